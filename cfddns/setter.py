"""Bringing DNS records and WAF lists in line with the detected addresses.

Existing records are reused where possible so that their attributes are kept;
only when that fails are new records created and stale ones removed.
"""

from __future__ import annotations

import enum
import ipaddress
from typing import Any, Hashable, Iterable, Mapping, Optional, Protocol, Sequence, Union

from cfddns.pp import Emoji, PrettyPrinter
from cfddns.protocol_base import IPAddress, IPFamily

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

# The widest ranges a WAF list item may cover for one detected address.
_WAF_LIST_MAX_PREFIX_LEN = {IPFamily.IP4: 32, IPFamily.IP6: 64}


class ResponseCode(enum.IntEnum):
    """What happened, in enough detail for monitors and notifiers."""

    NOOP = 0  # nothing needed to change
    UPDATED = 1  # the change was made
    UPDATING = 2  # the change was started asynchronously
    FAILED = 3  # the change could not be finished


class DeletionMode(enum.Enum):
    """Why a record is being deleted."""

    REGULAR = "regular"
    FINAL = "final"


class _Described(Protocol):
    def describe(self) -> str: ...


class _Record(Protocol):
    id: Hashable
    ip: Optional[IPAddress]
    params: Any


class _WAFListItem(Protocol):
    id: Hashable
    prefix: IPNetwork


class _Handle(Protocol):
    def list_records(
        self, ppfmt: PrettyPrinter, ip_family: IPFamily, domain: Any, expected_params: Any
    ) -> Optional[tuple[Sequence[_Record], bool]]: ...

    def update_record(
        self,
        ppfmt: PrettyPrinter,
        ip_family: IPFamily,
        domain: Any,
        record_id: Hashable,
        ip: IPAddress,
        current_params: Any,
        expected_params: Any,
    ) -> bool: ...

    def create_record(
        self,
        ppfmt: PrettyPrinter,
        ip_family: IPFamily,
        domain: Any,
        ip: IPAddress,
        expected_params: Any,
    ) -> Optional[Hashable]: ...

    def delete_record(
        self,
        ppfmt: PrettyPrinter,
        ip_family: IPFamily,
        domain: Any,
        record_id: Hashable,
        mode: DeletionMode,
    ) -> bool: ...

    def list_waf_list_items(
        self, ppfmt: PrettyPrinter, waf_list: Any, list_description: str
    ) -> Optional[tuple[Sequence[_WAFListItem], bool, bool]]: ...

    def create_waf_list_items(
        self,
        ppfmt: PrettyPrinter,
        waf_list: Any,
        list_description: str,
        prefixes: list[IPNetwork],
        item_comment: str,
    ) -> bool: ...

    def delete_waf_list_items(
        self, ppfmt: PrettyPrinter, waf_list: Any, list_description: str, ids: list[Hashable]
    ) -> bool: ...

    def final_clear_waf_list_async(
        self, ppfmt: PrettyPrinter, waf_list: Any, list_description: str
    ) -> Optional[bool]: ...


def describe_prefix_or_ip(prefix: IPNetwork) -> str:
    """A single address for a full-length prefix, otherwise the prefix in CIDR form."""
    if prefix.prefixlen == prefix.max_prefixlen:
        return str(prefix.network_address)
    return str(prefix)


def _cancelled(cancel: Any) -> bool:
    return cancel is not None and cancel.is_set()


def _contains(prefix: IPNetwork, ip: Optional[IPAddress]) -> bool:
    return ip is not None and ip.version == prefix.version and ip in prefix


def _masked(ip: IPAddress, bits: int) -> IPNetwork:
    if ip.version == 4:
        return ipaddress.IPv4Network((int(ip), bits), strict=False)
    return ipaddress.IPv6Network((int(ip), bits), strict=False)


class Setter:
    """Updates DNS records and WAF lists through an API handle.

    The handle reports failure by returning None (for listings, creations and
    asynchronous clearing) or False (for updates and deletions); it is expected
    to have explained the failure already. ``cancel`` arguments are optional
    objects with ``is_set()``, such as ``threading.Event``.
    """

    def __init__(self, handle: _Handle) -> None:
        self.handle = handle

    def _already_done(
        self, ppfmt: PrettyPrinter, cached: bool, fmt: str, *args: object
    ) -> ResponseCode:
        ppfmt.info(Emoji.ALREADY_DONE, fmt + (" (cached)" if cached else ""), *args)
        return ResponseCode.NOOP

    def set(
        self,
        ppfmt: PrettyPrinter,
        ip_family: IPFamily,
        domain: _Described,
        ip: IPAddress,
        expected_params: Any,
        cancel: Any = None,
    ) -> ResponseCode:
        """Make the domain point to exactly the given address."""
        record_type = ip_family.record_type()
        domain_description = domain.describe()
        inconsistent = "Failed to properly update %s records of %s; records might be inconsistent"

        listed = self.handle.list_records(ppfmt, ip_family, domain, expected_params)
        if listed is None:
            return ResponseCode.FAILED
        records, cached = listed

        matched = [r for r in records if r.ip == ip]
        unmatched = [r for r in records if r.ip != ip]

        found = bool(matched)
        matched = matched[1:]

        if found and not matched and not unmatched:
            return self._already_done(
                ppfmt,
                cached,
                "The %s records of %s are already up to date",
                record_type,
                domain_description,
            )

        # Prefer recycling a stale record so that its TTL and proxy setting survive.
        if not found and unmatched:
            stale, unmatched = unmatched[0], unmatched[1:]
            if not self.handle.update_record(
                ppfmt, ip_family, domain, stale.id, ip, stale.params, expected_params
            ):
                ppfmt.notice(Emoji.ERROR, inconsistent, record_type, domain_description)
                return ResponseCode.FAILED
            ppfmt.notice(
                Emoji.UPDATE,
                "Updated a stale %s record of %s (ID: %s)",
                record_type,
                domain_description,
                stale.id,
            )
            found = True

        if not found:
            record_id = self.handle.create_record(ppfmt, ip_family, domain, ip, expected_params)
            if record_id is None:
                ppfmt.notice(Emoji.ERROR, inconsistent, record_type, domain_description)
                return ResponseCode.FAILED
            ppfmt.notice(
                Emoji.CREATION,
                "Added a new %s record of %s (ID: %s)",
                record_type,
                domain_description,
                record_id,
            )

        for record in unmatched:
            if not self.handle.delete_record(
                ppfmt, ip_family, domain, record.id, DeletionMode.REGULAR
            ):
                ppfmt.notice(Emoji.ERROR, inconsistent, record_type, domain_description)
                return ResponseCode.FAILED
            ppfmt.notice(
                Emoji.DELETION,
                "Deleted a stale %s record of %s (ID: %s)",
                record_type,
                domain_description,
                record.id,
            )

        # Duplicates are harmless, so failing to delete them is not an error.
        for record in matched:
            if self.handle.delete_record(
                ppfmt, ip_family, domain, record.id, DeletionMode.REGULAR
            ):
                ppfmt.notice(
                    Emoji.DELETION,
                    "Deleted a duplicate %s record of %s (ID: %s)",
                    record_type,
                    domain_description,
                    record.id,
                )
            if _cancelled(cancel):
                break

        return ResponseCode.UPDATED

    def set_multiple(
        self,
        ppfmt: PrettyPrinter,
        ip_family: IPFamily,
        domain: _Described,
        ips: Iterable[IPAddress],
        expected_params: Any,
        cancel: Any = None,
    ) -> ResponseCode:
        """Make the domain point to exactly the given addresses."""
        targets = dict.fromkeys(ips)
        if not targets:
            return self.final_delete(ppfmt, ip_family, domain, expected_params, cancel)

        record_type = ip_family.record_type()
        domain_description = domain.describe()

        listed = self.handle.list_records(ppfmt, ip_family, domain, expected_params)
        if listed is None:
            return ResponseCode.FAILED
        records, cached = listed

        unmatched = []
        for record in records:
            if record.ip in targets:
                del targets[record.ip]
            else:
                unmatched.append(record)

        if not targets and not unmatched:
            return self._already_done(
                ppfmt,
                cached,
                "The %s records of %s are already up to date",
                record_type,
                domain_description,
            )

        all_ok = True
        stale_records = iter(unmatched)
        remaining = list(unmatched)
        for ip in targets:
            stale = next(stale_records, None)
            if stale is not None:
                remaining.remove(stale)
                if not self.handle.update_record(
                    ppfmt, ip_family, domain, stale.id, ip, stale.params, expected_params
                ):
                    all_ok = False
                    if _cancelled(cancel):
                        break
                    continue
                ppfmt.notice(
                    Emoji.UPDATE,
                    "Updated %s record of %s to %s (ID: %s)",
                    record_type,
                    domain_description,
                    ip,
                    stale.id,
                )
            else:
                record_id = self.handle.create_record(
                    ppfmt, ip_family, domain, ip, expected_params
                )
                if record_id is None:
                    all_ok = False
                    if _cancelled(cancel):
                        break
                    continue
                ppfmt.notice(
                    Emoji.CREATION,
                    "Created %s record of %s with %s (ID: %s)",
                    record_type,
                    domain_description,
                    ip,
                    record_id,
                )

        for record in remaining:
            if not self.handle.delete_record(
                ppfmt, ip_family, domain, record.id, DeletionMode.REGULAR
            ):
                all_ok = False
                if _cancelled(cancel):
                    break
                continue
            ppfmt.notice(
                Emoji.DELETION,
                "Deleted stale %s record of %s (ID: %s)",
                record_type,
                domain_description,
                record.id,
            )

        if not all_ok:
            ppfmt.notice(
                Emoji.ERROR,
                "Failed to properly update %s records of %s; records might be inconsistent",
                record_type,
                domain_description,
            )
            return ResponseCode.FAILED
        return ResponseCode.UPDATED

    def final_delete(
        self,
        ppfmt: PrettyPrinter,
        ip_family: IPFamily,
        domain: _Described,
        expected_params: Any,
        cancel: Any = None,
    ) -> ResponseCode:
        """Delete all managed records of the domain."""
        record_type = ip_family.record_type()
        domain_description = domain.describe()

        listed = self.handle.list_records(ppfmt, ip_family, domain, expected_params)
        if listed is None:
            return ResponseCode.FAILED
        records, cached = listed

        ids = [record.id for record in records]
        if not ids:
            return self._already_done(
                ppfmt,
                cached,
                "The %s records of %s were already deleted",
                record_type,
                domain_description,
            )

        all_ok = True
        for record_id in ids:
            if not self.handle.delete_record(
                ppfmt, ip_family, domain, record_id, DeletionMode.FINAL
            ):
                all_ok = False
                if _cancelled(cancel):
                    ppfmt.info(
                        Emoji.TIMEOUT,
                        "Deletion of %s records of %s aborted by timeout or signals; "
                        "records might be inconsistent",
                        record_type,
                        domain_description,
                    )
                    return ResponseCode.FAILED
                continue
            ppfmt.notice(
                Emoji.DELETION,
                "Deleted a stale %s record of %s (ID: %s)",
                record_type,
                domain_description,
                record_id,
            )

        if not all_ok:
            ppfmt.notice(
                Emoji.ERROR,
                "Failed to properly delete %s records of %s; records might be inconsistent",
                record_type,
                domain_description,
            )
            return ResponseCode.FAILED
        return ResponseCode.UPDATED

    def set_waf_list(
        self,
        ppfmt: PrettyPrinter,
        waf_list: _Described,
        list_description: str,
        detected: Mapping[IPFamily, Optional[IPAddress]],
        item_comment: str,
    ) -> ResponseCode:
        """Keep only ranges covering detected addresses, adding ranges where needed.

        A family mapped to None was detected unsuccessfully; its existing
        ranges are then kept.
        """
        listed = self.handle.list_waf_list_items(ppfmt, waf_list, list_description)
        if listed is None:
            return ResponseCode.FAILED
        items, already_existing, cached = listed
        if not already_existing:
            ppfmt.notice(Emoji.CREATION, "Created a new list %s", waf_list.describe())

        to_delete: list[_WAFListItem] = []
        to_create: list[IPNetwork] = []
        for ip_family in (IPFamily.IP4, IPFamily.IP6):
            managed = ip_family in detected
            ip = detected.get(ip_family)
            covered = False
            for item in items:
                if not ip_family.matches(item.prefix.network_address):
                    continue
                if _contains(item.prefix, ip):
                    covered = True
                elif managed and ip is None:
                    pass  # detection failed; keep what is there
                else:
                    to_delete.append(item)
            if not covered and ip is not None:
                to_create.append(_masked(ip, _WAF_LIST_MAX_PREFIX_LEN[ip_family]))

        if not to_create and not to_delete:
            return self._already_done(
                ppfmt, cached, "The list %s is already up to date", waf_list.describe()
            )

        inconsistent = "Failed to properly update the list %s; its content may be inconsistent"
        if not self.handle.create_waf_list_items(
            ppfmt, waf_list, list_description, to_create, item_comment
        ):
            ppfmt.notice(Emoji.ERROR, inconsistent, waf_list.describe())
            return ResponseCode.FAILED
        for prefix in to_create:
            ppfmt.notice(
                Emoji.CREATION,
                "Added %s to the list %s",
                describe_prefix_or_ip(prefix),
                waf_list.describe(),
            )

        if not self.handle.delete_waf_list_items(
            ppfmt, waf_list, list_description, [item.id for item in to_delete]
        ):
            ppfmt.notice(Emoji.ERROR, inconsistent, waf_list.describe())
            return ResponseCode.FAILED
        for item in to_delete:
            ppfmt.notice(
                Emoji.DELETION,
                "Deleted %s from the list %s",
                describe_prefix_or_ip(item.prefix),
                waf_list.describe(),
            )

        return ResponseCode.UPDATED

    def final_clear_waf_list(
        self, ppfmt: PrettyPrinter, waf_list: _Described, list_description: str
    ) -> ResponseCode:
        """Delete the list, or start clearing it when it cannot be deleted."""
        deleted = self.handle.final_clear_waf_list_async(ppfmt, waf_list, list_description)
        if deleted is None:
            return ResponseCode.FAILED
        if deleted:
            ppfmt.notice(Emoji.DELETION, "The list %s was deleted", waf_list.describe())
            return ResponseCode.UPDATED
        ppfmt.notice(
            Emoji.CLEAR, "The list %s is being cleared (asynchronously)", waf_list.describe()
        )
        return ResponseCode.UPDATING