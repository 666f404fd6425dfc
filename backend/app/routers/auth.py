"""
认证路由
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.schemas import LoginRequest, LoginResponse, EmployeeInfo
from app.models.ontology import Employee
from app.services.employee_service import EmployeeService
from app.security.auth import get_current_user

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """用户登录"""
    service = EmployeeService(db)
    try:
        result = service.authenticate(data.username, data.password)
        if not result:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="用户名或密码错误"
            )
        return result
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))


@router.get("/me", response_model=EmployeeInfo)
def get_current_user_info(current_user: Employee = Depends(get_current_user)):
    """获取当前用户信息"""
    return current_user
