# FILE: medicine_corner/services/stock_adjustments.py
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from medicine_corner.core.errors import ValidationError
from medicine_corner.models.medicine import Medicine
from medicine_corner.models.medicine_stock import MedicineStock, StockTransaction, StockTxnType
from medicine_corner.services.locking import lock_one
from medicine_corner.services.money import D, money2, require_positive_quantity
from medicine_corner.services.stock_valuation import refresh_medicine_totals

logger = logging.getLogger(__name__)

# adjustment_type -> stock transaction type
ADJUSTMENT_TXN_TYPES = {
    "add": StockTxnType.ADJUSTMENT.value,
    "reduce": StockTxnType.ADJUSTMENT.value,
    "expired": StockTxnType.EXPIRED.value,
    "damaged": StockTxnType.DAMAGED.value,
}


def adjust_stock(
    db: Session,
    stock_id: int,
    adjustment_type: str,
    quantity: Any,
    reason: str,
    user_id: Optional[int] = None,
) -> MedicineStock:
    """
    Manual correction of a batch's available units. The purchased quantity
    and its total stay as invoiced.
      add                      -> available grows, up to the purchased quantity
      reduce/expired/damaged   -> available shrinks (never below 0)
    """
    if adjustment_type not in ADJUSTMENT_TXN_TYPES:
        raise ValidationError("invalid_adjustment_type", f"Unknown adjustment type '{adjustment_type}'",
                              field="adjustment_type", value=adjustment_type)
    qty = require_positive_quantity(quantity)

    stock = lock_one(db, MedicineStock, stock_id, "Stock")
    medicine = lock_one(db, Medicine, stock.medicine_id, "Medicine")
    available = int(stock.available_quantity or 0)

    if adjustment_type == "add":
        room = int(stock.quantity or 0) - available
        if qty > room:
            raise ValidationError(
                "exceeds_batch_quantity",
                f"Batch {stock.batch_number} was bought with {stock.quantity} units; "
                f"only {room} can be added back",
                field="quantity",
                value=qty,
                limit=room,
            )
        stock.available_quantity = available + qty
        change = qty
    else:
        if qty > available:
            raise ValidationError(
                "insufficient_available_quantity",
                f"Only {available} units available in batch {stock.batch_number}",
                field="quantity",
                value=qty,
                limit=available,
            )
        stock.available_quantity = available - qty
        change = -qty

    db.add(StockTransaction(
        stock_id=stock.id,
        type=ADJUSTMENT_TXN_TYPES[adjustment_type],
        quantity_change=change,
        unit_price=stock.buy_price,
        total_amount=money2(D(stock.buy_price) * qty),
        reference_type="stock_adjustment",
        reference_id=stock.id,
        reason=reason,
        created_by=user_id,
    ))

    refresh_medicine_totals(db, medicine, recompute_average=True)
    db.flush()

    logger.info("stock %s %s %s (%s) available=%s total_stock=%s",
                stock.id, adjustment_type, qty, reason, stock.available_quantity, medicine.total_stock)
    return stock
