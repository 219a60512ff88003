import pytest

from iqxfer.drivers import DeviceError, HackRFTransceiver, MockTransceiver, create_driver
from iqxfer.drivers import hackrf as hackrf_module


class _Library:
    def __init__(self):
        self.exits = 0

    def pyhackrf_exit(self):
        self.exits += 1


class _BrokenDevice:
    def pyhackrf_close(self):
        raise RuntimeError("HACKRF_ERROR_LIBUSB")


def test_close_releases_library_when_device_close_fails(monkeypatch):
    library = _Library()
    monkeypatch.setattr(hackrf_module, "pyhackrf", library)
    driver = HackRFTransceiver()
    driver._device = _BrokenDevice()
    driver._library_initialised = True

    with pytest.raises(DeviceError) as excinfo:
        driver.close()

    assert excinfo.value.operation == "hackrf_close"
    assert library.exits == 1
    assert driver._device is None
    driver.close()
    assert library.exits == 1


def test_create_driver_selects_mock_for_mock_serials():
    driver = create_driver("mock://bench", 4096)
    assert isinstance(driver, MockTransceiver)
    assert driver.buffer_size == 4096
    assert driver.realtime
    assert isinstance(create_driver("0000000000000000"), HackRFTransceiver)


def test_mock_rejects_real_serials_and_unopened_use():
    device = MockTransceiver(256)
    with pytest.raises(DeviceError) as excinfo:
        device.open("0000000000000000")
    assert excinfo.value.name == "HACKRF_ERROR_NOT_FOUND"
    with pytest.raises(DeviceError):
        device.set_sample_rate(10e6)
