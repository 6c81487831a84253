"""BLE heart-rate strap producer.

Subscribes to the standard Heart Rate Measurement characteristic (0x2A37)
of any strap advertising the Heart Rate Service (0x180D), decodes each
notification straight into feed messages and hands them to an
:class:`~biowindow.aggregator.Aggregator` through an ``asyncio.Queue``
drained by :func:`biowindow.feed.pump`.

A measurement carrying RR intervals is treated as the HRV source: its HR and
intervals travel together as one :class:`IbiBatch`.  A measurement without
RR intervals becomes a passive :class:`HeartRateSample`.
"""

from __future__ import annotations

import asyncio
import logging
import struct

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from biowindow.aggregator import Aggregator
from biowindow.feed import HeartRateSample, IbiBatch, Message, pump
from biowindow.samples import HeartRateSource, IbiReading, monotonic_ms

logger = logging.getLogger(__name__)

HR_SERVICE_UUID = "0000180d-0000-1000-8000-00805f9b34fb"
HR_MEASUREMENT_UUID = "00002a37-0000-1000-8000-00805f9b34fb"

# Heart Rate Measurement flag bits
_FLAG_HR_UINT16 = 0x01
_FLAG_CONTACT_SUPPORTED = 0x02
_FLAG_CONTACT_DETECTED = 0x04
_FLAG_ENERGY = 0x08
_FLAG_RR = 0x10

# RR intervals are sent in 1/1024 s units.
_RR_UNITS_PER_SECOND = 1024


# ---------------------------------------------------------------------------
# Heart Rate Measurement decoding (0x2A37)
# ---------------------------------------------------------------------------


def rr_to_ibi_ms(rr_raw: int) -> int:
    """Convert a raw 1/1024 s RR interval to whole milliseconds."""
    return round(rr_raw * 1000 / _RR_UNITS_PER_SECOND)


def decode_measurement(data: bytes, timestamp_ms: int) -> list[Message]:
    """Decode one Heart Rate Measurement notification into feed messages.

    Intervals are flagged abnormal when the strap supports contact
    detection and reports the sensor off the skin.  Energy expended is
    skipped.  Range checks are left to the aggregator's channels.

    Raises:
        ValueError: if the notification is shorter than its flags announce.
    """
    try:
        flags = data[0]
        offset = 1
        if flags & _FLAG_HR_UINT16:
            bpm = struct.unpack_from("<H", data, offset)[0]
            offset += 2
        else:
            bpm = data[offset]
            offset += 1
    except (IndexError, struct.error) as e:
        raise ValueError(f"truncated heart-rate measurement: {bytes(data).hex()}") from e

    if flags & _FLAG_ENERGY:
        offset += 2

    rr_raw: list[int] = []
    if flags & _FLAG_RR:
        while offset + 1 < len(data):
            rr_raw.append(struct.unpack_from("<H", data, offset)[0])
            offset += 2

    if not rr_raw:
        return [HeartRateSample(float(bpm), timestamp_ms, HeartRateSource.PASSIVE)]

    lost_contact = bool(flags & _FLAG_CONTACT_SUPPORTED) and not flags & _FLAG_CONTACT_DETECTED
    readings = tuple(IbiReading(rr_to_ibi_ms(rr), not lost_contact) for rr in rr_raw)
    return [IbiBatch(readings, timestamp_ms, float(bpm))]


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


async def find_hr_strap(timeout: float = 10.0) -> BLEDevice | None:
    """Find the first device advertising the Heart Rate Service."""

    def _match(device: BLEDevice, adv: AdvertisementData) -> bool:
        return HR_SERVICE_UUID in [u.lower() for u in adv.service_uuids]

    print(f"Scanning for heart-rate straps ({timeout}s)...")
    return await BleakScanner.find_device_by_filter(_match, timeout=timeout)


async def stream_heart_rate(
    aggregator: Aggregator,
    address: str | None = None,
    duration: float | None = None,
) -> int:
    """Connect to a strap and feed its measurements into *aggregator*.

    The aggregator must already be started.  Runs until cancelled, or for
    *duration* seconds if given.

    Returns:
        Number of measurements received.
    """
    if address is None:
        device = await find_hr_strap()
        if device is None:
            print("No heart-rate strap found.")
            return 0
        address = device.address

    queue: asyncio.Queue = asyncio.Queue()
    count = 0

    def _on_notification(_char: BleakGATTCharacteristic, data: bytearray) -> None:
        nonlocal count
        try:
            messages = decode_measurement(data, monotonic_ms())
        except ValueError as e:
            logger.debug("Malformed HR measurement: %s", e)
            return
        count += 1
        for message in messages:
            queue.put_nowait(message)

    print(f"Connecting to {address}...")

    async with BleakClient(address) as client:
        print(f"Connected. MTU={client.mtu_size}")
        consumer = asyncio.create_task(pump(queue, aggregator))
        await client.start_notify(HR_MEASUREMENT_UUID, _on_notification)
        print("Streaming (Ctrl+C to stop):\n")

        try:
            if duration:
                await asyncio.sleep(duration)
            else:
                while True:
                    await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            try:
                await client.stop_notify(HR_MEASUREMENT_UUID)
            except Exception as e:
                logger.warning("stop_notify failed: %s", e)
            queue.put_nowait(None)
            await consumer
            print(f"\n  {count} measurements received.")

    return count
