"""
Star packages, invoice creation and the Telegram webhook.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from fruitmerge.api.dependencies import get_persistence, get_store, get_telegram
from fruitmerge.config import Settings, get_settings
from fruitmerge.errors import UnknownPackageError
from fruitmerge.payments import WebhookHandler, item_payload, stars_payload
from fruitmerge.records import STAR_PACKAGES, find_package
from fruitmerge.schemas import BuyStarsRequest, CreateInvoiceRequest, InvoiceResponse
from fruitmerge.telegram_client import TelegramGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


def _invoice_failure(context: str, error: Exception) -> JSONResponse:
    logger.error(f"{context} failed: {error}", exc_info=True)
    return JSONResponse(status_code=500, content={"success": False, "error": str(error)})


@router.get("/star-packages", summary="List star packages")
async def star_packages():
    return [package.dump() for package in STAR_PACKAGES]


@router.post("/buy-stars", response_model=InvoiceResponse, summary="Create a star package invoice")
async def buy_stars(body: BuyStarsRequest, telegram: TelegramGateway = Depends(get_telegram)):
    package = find_package(body.package_id)
    if package is None:
        raise UnknownPackageError(body.package_id)

    try:
        link = await telegram.create_invoice_link(
            title=f"{package.total_stars} ⭐ Stars",
            description=package.description,
            payload=stars_payload(package.id, body.user_id),
            amount=package.price,
            label=f"{package.total_stars} Stars",
        )
    except Exception as e:
        return _invoice_failure("Buy stars", e)
    return InvoiceResponse(invoice_link=link)


@router.post("/create-invoice", response_model=InvoiceResponse, summary="Create an item invoice")
async def create_invoice(body: CreateInvoiceRequest, telegram: TelegramGateway = Depends(get_telegram)):
    try:
        link = await telegram.create_invoice_link(
            title=body.title,
            description=body.description,
            payload=item_payload(body.item_id, body.user_id),
            amount=body.price,
        )
    except Exception as e:
        return _invoice_failure("Create invoice", e)
    return InvoiceResponse(invoice_link=link)


@router.post("/webhook", summary="Telegram webhook")
async def webhook(
    request: Request,
    store=Depends(get_store),
    telegram: TelegramGateway = Depends(get_telegram),
    persistence=Depends(get_persistence),
    settings: Settings = Depends(get_settings),
):
    """
    Receive a Telegram update.

    Always answers 200: Telegram only tracks delivery, and an error status
    would make it redeliver the same update.
    """
    try:
        raw = await request.json()
    except ValueError as e:
        logger.warning(f"Webhook received a non-JSON body: {e}")
        return Response(status_code=200)

    if isinstance(raw, dict):
        handler = WebhookHandler(store, telegram, persistence, settings)
        await handler.handle(raw)
    else:
        logger.warning("Webhook body is not a JSON object, ignoring")
    return Response(status_code=200)
