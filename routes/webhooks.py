from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.db import get_db
from core.logging import get_logger
from models.user import User
from services.billing import PAID_EVENTS, activate_paid_plan

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/cakto")
async def cakto_webhook(request: Request, db: Session = Depends(get_db)):
    """Payment notifications from Cakto. Approved payments unlock one paid year."""
    try:
        event = await request.json()
        logger.info("Cakto webhook received: event=%s status=%s", event.get("event"), event.get("status"))

        customer_email = (event.get("customer") or {}).get("email")
        event_type = event.get("event")
        plan_name = (event.get("product") or {}).get("name")

        if not customer_email:
            return JSONResponse(status_code=400, content={"error": "Email não encontrado no webhook"})

        if event_type not in PAID_EVENTS:
            return {"msg": "Evento ignorado", "ignored": True}

        user = db.query(User).filter(User.email == customer_email.strip().lower()).one_or_none()
        if not user:
            return JSONResponse(status_code=404, content={"error": "Usuário não encontrado"})

        activate_paid_plan(db, user)
        logger.info("Plan %r released for user %s", plan_name, user.id)
        return {"msg": "Assinatura liberada com sucesso!"}

    except Exception:
        logger.exception("Cakto webhook failed")
        db.rollback()
        return JSONResponse(status_code=500, content={"error": "Erro interno"})
