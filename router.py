import re
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

import schemas
from database import Expense, get_db
from errors import NotFound, store_errors
from logger import logger

router = APIRouter()

ROW_ID = re.compile(r"-?[0-9]+")


def _row_id(expense_id: str) -> Optional[int]:
    # Identifiers are opaque; anything that isn't a plain integer matches no row
    if not ROW_ID.fullmatch(expense_id):
        return None
    value = int(expense_id)
    # ids are SERIAL (int4)
    if not -(2**31) <= value < 2**31:
        return None
    return value


@router.get("/expenses", response_model=list[schemas.Expense])
def list_expenses(db: Session = Depends(get_db)):
    with store_errors():
        expenses = db.query(Expense).order_by(Expense.date.desc()).all()
    return expenses


@router.post(
    "/expenses", response_model=schemas.Expense, status_code=status.HTTP_201_CREATED
)
def create_expense(expense: schemas.ExpenseIn, db: Session = Depends(get_db)):
    db_expense = Expense(
        description=expense.description,
        amount=expense.amount,
        category=expense.category,
        date=expense.date,
    )
    with store_errors():
        db.add(db_expense)
        db.commit()

    logger.info(f"Created expense {db_expense.id}")
    return db_expense


@router.put("/expenses/{expense_id}")
def update_expense(
    expense_id: str, expense: schemas.ExpenseIn, db: Session = Depends(get_db)
):
    row_id = _row_id(expense_id)
    if row_id is None:
        raise NotFound(expense_id)

    with store_errors():
        updated = (
            db.query(Expense)
            .filter(Expense.id == row_id)
            .update(
                {
                    Expense.description: expense.description,
                    Expense.amount: expense.amount,
                    Expense.category: expense.category,
                    Expense.date: expense.date,
                },
                synchronize_session=False,
            )
        )
        db.commit()

    if updated == 0:
        raise NotFound(expense_id)

    logger.info(f"Updated expense {row_id}")
    return Response(status_code=status.HTTP_200_OK)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(expense_id: str, db: Session = Depends(get_db)):
    row_id = _row_id(expense_id)
    if row_id is None:
        raise NotFound(expense_id)

    with store_errors():
        deleted = (
            db.query(Expense)
            .filter(Expense.id == row_id)
            .delete(synchronize_session=False)
        )
        db.commit()

    if deleted == 0:
        raise NotFound(expense_id)

    logger.info(f"Deleted expense {row_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
