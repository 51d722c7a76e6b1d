from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from lotledger.db.database import get_db
from lotledger.models.warehouse import Warehouse


def get_warehouse_or_404(warehouse_id: int, db: Session = Depends(get_db)) -> Warehouse:
    warehouse = db.get(Warehouse, warehouse_id)
    if not warehouse:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse not found")
    return warehouse


def get_active_warehouse(warehouse: Warehouse = Depends(get_warehouse_or_404)) -> Warehouse:
    if not warehouse.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Warehouse is archived")
    return warehouse
