"""asyncio front end for the OWON DC power supply driver.

Serial I/O is blocking, so each call runs the synchronous
:class:`~hwtest_owon.psu.OwonDcPsu` method on the event loop's default
executor. A call is a single suspension point: it awaits exactly one blocking
driver call and never holds the channel across awaits of its own.

Cancellation follows asyncio semantics and is reported as
:class:`asyncio.CancelledError`:

* A task cancelled before its call starts (including while queued behind
  another call) never touches the transport.
* A task cancelled while its call is in flight waits for the blocking
  primitive to return or hit its configured timeout, then raises
  ``CancelledError``. The next queued call only starts after that, so two
  primitives never interleave on one line.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from types import TracebackType
from typing import Callable, TypeVar

from hwtest_scpi import InstrumentIdentity

from hwtest_owon.psu import Measurement, MeasurementInfo, OwonDcPsu

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class AsyncOwonDcPsu:
    """Coroutine-based driver for OWON DC power supplies.

    Args:
        psu: The synchronous driver to delegate to.

    Example:
        >>> async with AsyncOwonDcPsu(OwonDcPsu(transport)) as psu:
        ...     await psu.set_voltage(5.0)
        ...     await psu.set_output(True)
        ...     volts, amps, watts = await psu.measure_all()
    """

    def __init__(self, psu: OwonDcPsu) -> None:
        self._psu = psu
        self._lock = asyncio.Lock()

    @property
    def psu(self) -> OwonDcPsu:
        """The wrapped synchronous driver."""
        return self._psu

    @property
    def is_connected(self) -> bool:
        """Return True if the transport is connected."""
        return self._psu.is_connected

    # -- Lifecycle ----------------------------------------------------------

    async def connect(self) -> None:
        """Open the transport."""
        await self._run(self._psu.connect)

    async def close(self) -> None:
        """Close the transport."""
        await self._run(self._psu.close)

    async def __aenter__(self) -> AsyncOwonDcPsu:
        if not self.is_connected:
            await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- Identity / reset ---------------------------------------------------

    async def identify(self) -> str:
        """Query the raw identification string (``*IDN?``)."""
        return await self._run(self._psu.identify)

    async def get_identity(self) -> InstrumentIdentity:
        """Query and parse instrument identification (``*IDN?``)."""
        return await self._run(self._psu.get_identity)

    async def reset(self) -> None:
        """Reset instrument to factory defaults (``*RST``)."""
        await self._run(self._psu.reset)

    # -- Output -------------------------------------------------------------

    async def set_output(self, enabled: bool) -> None:
        """Enable or disable the output."""
        await self._run(self._psu.set_output, enabled)

    async def get_output(self) -> bool:
        """Query whether the output is enabled."""
        return await self._run(self._psu.get_output)

    # -- Voltage ------------------------------------------------------------

    async def set_voltage(self, volts: float) -> None:
        """Set the output voltage setpoint."""
        await self._run(self._psu.set_voltage, volts)

    async def get_voltage(self) -> float:
        """Query the output voltage setpoint."""
        return await self._run(self._psu.get_voltage)

    async def set_voltage_limit(self, volts: float) -> None:
        """Set the over-voltage protection level."""
        await self._run(self._psu.set_voltage_limit, volts)

    async def get_voltage_limit(self) -> float:
        """Query the over-voltage protection level."""
        return await self._run(self._psu.get_voltage_limit)

    async def measure_voltage(self) -> float:
        """Measure the actual output voltage."""
        return await self._run(self._psu.measure_voltage)

    # -- Current ------------------------------------------------------------

    async def set_current(self, amps: float) -> None:
        """Set the output current setpoint."""
        await self._run(self._psu.set_current, amps)

    async def get_current(self) -> float:
        """Query the output current setpoint."""
        return await self._run(self._psu.get_current)

    async def set_current_limit(self, amps: float) -> None:
        """Set the over-current protection level."""
        await self._run(self._psu.set_current_limit, amps)

    async def get_current_limit(self) -> float:
        """Query the over-current protection level."""
        return await self._run(self._psu.get_current_limit)

    async def measure_current(self) -> float:
        """Measure the actual output current."""
        return await self._run(self._psu.measure_current)

    # -- Power / combined ---------------------------------------------------

    async def measure_power(self) -> float:
        """Measure the actual output power."""
        return await self._run(self._psu.measure_power)

    async def measure_all(self) -> Measurement:
        """Measure voltage, current and power (``MEAS:ALL?``)."""
        return await self._run(self._psu.measure_all)

    async def measure_all_info(self) -> MeasurementInfo:
        """Measure output values plus protection and mode status."""
        return await self._run(self._psu.measure_all_info)

    # -- System -------------------------------------------------------------

    async def set_local(self) -> None:
        """Return the front panel to local control."""
        await self._run(self._psu.set_local)

    async def set_remote(self) -> None:
        """Lock the front panel for remote control."""
        await self._run(self._psu.set_remote)

    # -- Private helpers ----------------------------------------------------

    async def _run(self, func: Callable[..., _T], *args: object) -> _T:
        """Run one blocking driver call on the default executor."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(None, functools.partial(func, *args))
            try:
                return await asyncio.shield(future)
            except asyncio.CancelledError:
                # The executor thread cannot be interrupted; hold the lock
                # until the primitive returns or times out.
                logger.debug("Cancelled during %s; waiting for I/O to finish", func.__name__)
                while not future.done():
                    try:
                        await asyncio.shield(future)
                    except asyncio.CancelledError:
                        continue
                    except Exception:  # pylint: disable=broad-except
                        logger.debug("Cancelled call %s failed", func.__name__, exc_info=True)
                raise
