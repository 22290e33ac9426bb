"""Price computation for a booking's resolved line items.

The calculator never touches the catalog: callers resolve unit prices first
and pass the resulting lines in, so identical inputs always give identical
output.
"""

from typing import Iterable

from src.domain.exceptions import BookingValidationError, QuantityOutOfBoundsError
from src.domain.models import (
    AddOnLine,
    CateringOrderLine,
    EquipmentRentalLine,
    PackageLine,
    PriceBreakdown,
)


def compute_price(
    package: PackageLine,
    add_ons: Iterable[AddOnLine] = (),
    equipment_rentals: Iterable[EquipmentRentalLine] = (),
    catering_orders: Iterable[CateringOrderLine] = (),
    discount_amount: int = 0,
) -> PriceBreakdown:
    """
    Returns the price breakdown for the given lines.

    Raises:
        BookingValidationError: non-positive quantity, inverted rental
            dates, negative price or negative discount.
        QuantityOutOfBoundsError: catering quantity outside the
            service's [min, max] order bounds.
    """
    add_ons = list(add_ons)
    equipment_rentals = list(equipment_rentals)
    catering_orders = list(catering_orders)

    _require_non_negative(package.base_price, f"package {package.package_id} base price")
    _require_non_negative(discount_amount, "discount amount")

    for line in add_ons:
        _validate_add_on(line)
    for line in equipment_rentals:
        _validate_rental(line)
    for line in catering_orders:
        _validate_catering(line)

    add_on_total = sum(line.line_total for line in add_ons)
    rental_total = sum(line.line_total for line in equipment_rentals)
    catering_total = sum(line.line_total for line in catering_orders)
    subtotal = package.base_price + add_on_total + rental_total + catering_total

    return PriceBreakdown(
        base_price=package.base_price,
        add_on_total=add_on_total,
        rental_total=rental_total,
        catering_total=catering_total,
        discount_amount=discount_amount,
        final_price=max(0, subtotal - discount_amount),
        security_deposit_total=sum(line.deposit_total for line in equipment_rentals),
    )


def _validate_add_on(line: AddOnLine) -> None:
    label = f"add-on {line.add_on_id}"
    if line.quantity <= 0:
        raise BookingValidationError(f"Quantity for {label} must be positive", field="add_ons")
    _require_non_negative(line.unit_price, f"{label} unit price")


def _validate_rental(line: EquipmentRentalLine) -> None:
    label = f"equipment {line.equipment_id}"
    if line.quantity <= 0:
        raise BookingValidationError(
            f"Quantity for {label} must be positive", field="equipment_rentals"
        )
    if line.rental_days < 1:
        raise BookingValidationError(
            f"Rental end date for {label} is before its start date",
            field="equipment_rentals",
        )
    _require_non_negative(line.daily_rate, f"{label} daily rate")
    _require_non_negative(line.security_deposit, f"{label} security deposit")


def _validate_catering(line: CateringOrderLine) -> None:
    label = f"catering service {line.catering_service_id}"
    if line.quantity <= 0:
        raise BookingValidationError(
            f"Quantity for {label} must be positive", field="catering_orders"
        )
    too_few = line.quantity < line.min_order_quantity
    too_many = (
        line.max_order_quantity is not None
        and line.quantity > line.max_order_quantity
    )
    if too_few or too_many:
        raise QuantityOutOfBoundsError(
            line=label,
            quantity=line.quantity,
            minimum=line.min_order_quantity,
            maximum=line.max_order_quantity,
        )
    _require_non_negative(line.unit_price, f"{label} unit price")


def _require_non_negative(amount: int, label: str) -> None:
    if amount < 0:
        raise BookingValidationError(f"{label} cannot be negative")
