"""Shop service: checkout, discounts, order tracking and warranty lifecycle."""
