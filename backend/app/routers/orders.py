"""
餐饮订单路由 - 小票生成
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import Employee, MenuType
from app.models.schemas import ReceiptResponse
from app.services.receipt_service import ReceiptService
from app.security.auth import get_current_user

router = APIRouter(prefix="/orders", tags=["餐饮订单"])


@router.post("/{order_id}/receipt", response_model=ReceiptResponse)
def generate_receipt(
    order_id: int,
    menu_type: MenuType = MenuType.FOOD,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """生成并存储小票"""
    service = ReceiptService(db)
    if not service.get_order(order_id, menu_type):
        raise HTTPException(status_code=404, detail="订单不存在")

    receipt_url = service.generate_and_store(order_id, menu_type)
    if not receipt_url:
        raise HTTPException(status_code=500, detail="小票生成失败")
    return ReceiptResponse(order_id=order_id, menu_type=menu_type, receipt_url=receipt_url)
