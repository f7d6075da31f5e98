"""Offering selection reconciliation for the booking form.

Selections are stored in a mapping keyed by offering id. Every function in
this module is a state transition: it receives the current mapping and
returns a new one, leaving the argument untouched. Invalid or rejected
operations return an unchanged copy instead of raising.

Two inputs change independently of the user's choices and are reconciled
here: the catalog's mandatory offerings, which must always be selected with
at least one unit, and the offerings bundled by the selected package, whose
``included`` flag must track the live package rather than a stale one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal

from fleet_booking.schemas.catalog import Offering

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OfferingSelection:
    """User choice for one offering."""

    offering: Offering
    quantity: int
    included: bool = False

    @property
    def offering_id(self) -> int:
        return self.offering.id

    @property
    def billable_quantity(self) -> int:
        """Units charged separately; one included unit is bundled for free."""
        return max(0, self.quantity - (1 if self.included else 0))

    @property
    def line_total(self) -> Decimal:
        return self.offering.unit_price * self.billable_quantity


Selections = Mapping[int, OfferingSelection]


def toggle(
    selections: Selections,
    catalog: Mapping[int, Offering],
    offering_id: int,
    selected: bool,
    *,
    mandatory_ids: Iterable[int] = (),
    included_ids: Iterable[int] = (),
) -> dict[int, OfferingSelection]:
    """Select or deselect an offering.

    Deselecting a mandatory offering, or an offering bundled by the live
    package, is rejected. Selecting an offering that is already selected or
    missing from the catalog does nothing.
    """
    result = dict(selections)
    included = frozenset(included_ids)

    if not selected:
        if offering_id in frozenset(mandatory_ids):
            logger.debug("Ignoring deselect of mandatory offering %s", offering_id)
            return result
        existing = result.get(offering_id)
        if existing is None:
            return result
        if existing.included and offering_id in included:
            logger.debug("Ignoring deselect of package offering %s", offering_id)
            return result
        del result[offering_id]
        return result

    if offering_id in result:
        return result
    offering = catalog.get(offering_id)
    if offering is None:
        return result
    result[offering_id] = OfferingSelection(
        offering=offering, quantity=1, included=offering_id in included
    )
    return result


def set_quantity(
    selections: Selections,
    offering_id: int,
    quantity: int,
    *,
    mandatory_ids: Iterable[int] = (),
) -> dict[int, OfferingSelection]:
    """Replace the quantity of an existing selection.

    The billable portion is clamped by the pricing calculator, not here.
    Mandatory offerings keep at least one unit.
    """
    result = dict(selections)
    existing = result.get(offering_id)
    if existing is None:
        return result
    floor = 1 if offering_id in frozenset(mandatory_ids) else 0
    result[offering_id] = replace(existing, quantity=max(floor, quantity))
    return result


def reconcile_mandatory(
    selections: Selections,
    catalog: Mapping[int, Offering],
    mandatory_ids: Iterable[int],
) -> dict[int, OfferingSelection]:
    """Ensure every mandatory offering is selected.

    Existing selections are never removed, even when an offering drops out
    of the mandatory set.
    """
    result = dict(selections)
    for offering_id in sorted(frozenset(mandatory_ids)):
        if offering_id in result:
            continue
        offering = catalog.get(offering_id)
        if offering is None:
            logger.warning("Mandatory offering %s missing from catalog", offering_id)
            continue
        result[offering_id] = OfferingSelection(
            offering=offering, quantity=1, included=False
        )
    return result


def reconcile_package_inclusion(
    selections: Selections,
    catalog: Mapping[int, Offering],
    included_ids: Iterable[int],
) -> dict[int, OfferingSelection]:
    """Recompute the ``included`` flag from the live package.

    Bundled offerings are selected with at least one unit. Selections that
    were included by a previous package become billable again.
    """
    result = dict(selections)
    included = frozenset(included_ids)

    for offering_id in sorted(included):
        existing = result.get(offering_id)
        if existing is not None:
            if not existing.included or existing.quantity < 1:
                result[offering_id] = replace(
                    existing, included=True, quantity=max(existing.quantity, 1)
                )
            continue
        offering = catalog.get(offering_id)
        if offering is None:
            continue
        result[offering_id] = OfferingSelection(
            offering=offering, quantity=1, included=True
        )

    for offering_id, selection in list(result.items()):
        if selection.included and offering_id not in included:
            result[offering_id] = replace(selection, included=False)
    return result


def display_order(selections: Selections) -> list[OfferingSelection]:
    """Included selections first, then alphabetical by offering name."""
    return sorted(
        selections.values(),
        key=lambda item: (
            not item.included,
            item.offering.name.casefold(),
            item.offering_id,
        ),
    )


def search(offerings: Iterable[Offering], term: str) -> list[Offering]:
    """Filter offerings by name, description or type."""
    lowered = term.strip().casefold()
    if not lowered:
        return list(offerings)
    return [
        offering
        for offering in offerings
        if lowered in offering.name.casefold()
        or lowered in (offering.description or "").casefold()
        or lowered in (offering.offering_type or "").casefold()
    ]


__all__ = [
    "OfferingSelection",
    "Selections",
    "display_order",
    "reconcile_mandatory",
    "reconcile_package_inclusion",
    "search",
    "set_quantity",
    "toggle",
]
