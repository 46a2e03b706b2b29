"""Unit tests for sensor register configuration."""

from __future__ import annotations

import pytest

from sensor_link.device.registers import (
    ADC_MODE_COMPANDING,
    ADC_MODE_LINEAR,
    CHIP_CONTROL_MASTER,
    CHIP_CONTROL_SLAVE,
    REG_ADC_MODE,
    REG_AEC_AGC_ENABLE,
    REG_ANALOG_GAIN,
    REG_CHIP_CONTROL,
    REG_DIGITAL_GAIN_TILES,
    REG_TOTAL_SHUTTER_WIDTH,
    REG_WINDOW_WIDTH,
    RegisterConfigurator,
    SensorGeometry,
    SensorMode,
    profile_registers,
)


class TestProfiles:

    def test_master_profile(self):
        table = dict(profile_registers(SensorMode.MASTER, SensorGeometry()))
        assert table[REG_CHIP_CONTROL] == CHIP_CONTROL_MASTER
        assert table[REG_WINDOW_WIDTH] == 752

    def test_slave_profile(self):
        table = dict(profile_registers(SensorMode.SLAVE, SensorGeometry()))
        assert table[REG_CHIP_CONTROL] == CHIP_CONTROL_SLAVE

    def test_parse_mode(self):
        assert SensorMode.parse("SLAVE") is SensorMode.SLAVE
        with pytest.raises(ValueError):
            SensorMode.parse("snapshot")


class TestRegisterConfigurator:

    def test_apply_profile_writes_table(self, register_bus):
        RegisterConfigurator(register_bus).apply_profile(SensorMode.MASTER)
        assert register_bus.writes[0] == (REG_CHIP_CONTROL, CHIP_CONTROL_MASTER)

    def test_exposure_converted_to_rows(self, register_bus):
        geometry = SensorGeometry(width=100, horizontal_blanking=0, pixel_clock_hz=1e6)
        RegisterConfigurator(register_bus, geometry).apply_exposure(1000)

        # 100 clocks per row at 1 MHz = 100 us per row.
        assert register_bus.registers[REG_TOTAL_SHUTTER_WIDTH] == 10

    def test_exposure_at_least_one_row(self, register_bus):
        RegisterConfigurator(register_bus).apply_exposure(0)
        assert register_bus.registers[REG_TOTAL_SHUTTER_WIDTH] == 1

    def test_analog_gain_clamped(self, register_bus):
        configurator = RegisterConfigurator(register_bus)
        configurator.apply_analog_gain(200)
        assert register_bus.registers[REG_ANALOG_GAIN] == 64
        configurator.apply_analog_gain(1)
        assert register_bus.registers[REG_ANALOG_GAIN] == 16

    def test_digital_gain_written_to_every_tile(self, register_bus):
        RegisterConfigurator(register_bus).apply_digital_gain(0x15)
        assert {register_bus.registers[a] for a in REG_DIGITAL_GAIN_TILES} == {0x05}

    def test_apply_mode(self, register_bus):
        configurator = RegisterConfigurator(register_bus)

        configurator.apply_mode(agc_enabled=True, companding_enabled=True)
        assert register_bus.registers[REG_AEC_AGC_ENABLE] == 0x03
        assert register_bus.registers[REG_ADC_MODE] == ADC_MODE_COMPANDING

        configurator.apply_mode(agc_enabled=False, companding_enabled=False)
        assert register_bus.registers[REG_AEC_AGC_ENABLE] == 0
        assert register_bus.registers[REG_ADC_MODE] == ADC_MODE_LINEAR
