# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module contains the read/update/re-read sequence run against the twin of each
identity when the module starts.

Synchronization is best-effort and attempted exactly once. Failures are logged and
returned to the caller as a TwinSyncResult, never raised.
"""
import datetime
import enum
import json
import logging
import random
from typing import Callable, Optional
from . import constant
from . import custom_typing

logger = logging.getLogger(__name__)

_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class SyncStatus(enum.Enum):
    SUCCEEDED = "succeeded"
    FETCH_FAILED = "fetch_failed"
    UPDATE_FAILED = "update_failed"


class TwinSyncResult:
    """Outcome of synchronizing the twin of one identity

    :ivar label: Name of the session that was synchronized
    :ivar status: :class:`SyncStatus` of the synchronization
    :ivar twin: The twin as first fetched, or None if the fetch failed
    :ivar patch: The reported properties patch that was submitted, if any
    :ivar reported: The reported properties after the update, if they were re-fetched
    :ivar error: The exception that ended the synchronization, if any
    """

    def __init__(
        self,
        label: str,
        status: SyncStatus,
        twin: Optional[custom_typing.Twin] = None,
        patch: Optional[custom_typing.TwinPatch] = None,
        reported: Optional[custom_typing.TwinPatch] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.label = label
        self.status = status
        self.twin = twin
        self.patch = patch
        self.reported = reported
        self.error = error

    def __repr__(self) -> str:
        return "TwinSyncResult(label={!r}, status={}, error={!r})".format(
            self.label, self.status.value, self.error
        )

    @property
    def succeeded(self) -> bool:
        return self.status is SyncStatus.SUCCEEDED

    @property
    def reason(self) -> Optional[str]:
        """Description of the failure, or None on success"""
        if self.error is None:
            return None
        return "{}: {}".format(type(self.error).__name__, self.error)

    @property
    def confirmed(self) -> bool:
        """True if the re-fetched reported properties contain every value that was written"""
        if not self.succeeded or not self.patch or self.reported is None:
            return False
        return _contains(self.reported, self.patch)


def build_reported_patch(
    now: Optional[datetime.datetime] = None, rng: Optional[random.Random] = None
) -> custom_typing.TwinPatch:
    """Build the reported properties patch written on every synchronization

    :param now: Time to report. Defaults to the current UTC time
    :param rng: Source of the random property suffix. Defaults to the module-level generator
    """
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    if rng is None:
        rng = random
    return {
        "first": "{} {}".format(
            constant.REPORTED_PROPERTY_PREFIX, rng.randrange(constant.REPORTED_PROPERTY_RANDOM_LIMIT)
        ),
        "second": {"date": format_long_date(now), "time": format_long_time(now)},
    }


def format_long_date(value: datetime.datetime) -> str:
    """Format a date in the invariant long date pattern, e.g. 'Monday, 05 October 2026'"""
    return "{}, {:02d} {} {:04d}".format(
        _DAY_NAMES[value.weekday()], value.day, _MONTH_NAMES[value.month - 1], value.year
    )


def format_long_time(value: datetime.datetime) -> str:
    """Format a time in the invariant long time pattern (24 hour clock), e.g. '15:04:05'"""
    return "{:02d}:{:02d}:{:02d}".format(value.hour, value.minute, value.second)


async def synchronize_twin(
    session,
    label: Optional[str] = None,
    clock: Optional[Callable[[], datetime.datetime]] = None,
    rng: Optional[random.Random] = None,
) -> TwinSyncResult:
    """Fetch the twin of a session, write a reported properties patch, and fetch it again.

    :param session: An open session providing get_twin() and update_reported_properties()
    :type session: :class:`edge_twins_module.session.ModuleSession`
    :param str label: Name of the session used in logs. Defaults to the session's label
    :param clock: Returns the time to report. Defaults to the current UTC time
    :param rng: Source of the random property suffix
    :returns: The outcome of the synchronization. This function does not raise for failures
        of the twin operations.
    """
    if label is None:
        label = getattr(session, "label", "session")

    twin = None
    try:
        logger.info("-- Try getting twin of '{}' --".format(label))
        twin = await session.get_twin()
        logger.info("Device Twin Content:")
        logger.info("- Reported: ")
        logger.info(_to_json(twin.get("reported")))
        logger.info("- Desired: ")
        logger.info(_to_json(twin.get("desired")))
        logger.info(constant.DONE_MARKER)
    except Exception as e:
        _log_error(e)
        twin = None
        fetch_error = e
    else:
        fetch_error = None

    logger.info("--- Try Updating reported props ---")
    if twin is None:
        logger.info("--- No device twin present, maybe caused by previous error ---")
        return TwinSyncResult(label, SyncStatus.FETCH_FAILED, error=fetch_error)

    patch = build_reported_patch(now=clock() if clock else None, rng=rng)
    try:
        await session.update_reported_properties(patch)
        logger.info(constant.DONE_MARKER)

        logger.info("--- Trying to get the twin, again ---")
        new_twin = await session.get_twin()
        reported = new_twin.get("reported")
        logger.info("- Reported (new): ")
        logger.info(_to_json(reported))
        logger.info(constant.DONE_MARKER)
    except Exception as e:
        _log_error(e)
        return TwinSyncResult(label, SyncStatus.UPDATE_FAILED, twin=twin, patch=patch, error=e)

    return TwinSyncResult(label, SyncStatus.SUCCEEDED, twin=twin, patch=patch, reported=reported)


def _log_error(e: BaseException) -> None:
    logger.error(constant.ERROR_BRACKET)
    logger.error("{}: {}".format(type(e).__name__, e), exc_info=e)
    logger.error(constant.ERROR_BRACKET)


def _to_json(value: custom_typing.JSONSerializable) -> str:
    return json.dumps(value, indent=2, sort_keys=True, default=str)


def _contains(document: custom_typing.JSONSerializable, expected: custom_typing.JSONSerializable):
    """Return True if every key/value of expected is present in document (recursively)"""
    if isinstance(expected, dict):
        if not isinstance(document, dict):
            return False
        return all(
            key in document and _contains(document[key], value) for key, value in expected.items()
        )
    return document == expected
