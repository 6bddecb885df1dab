import re
import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from core.db import get_db
from core.logging import get_logger
from core.redis import get_redis
from core.tenancy import STORE_NOT_FOUND, STORE_UNAVAILABLE, get_storefront
from models.product import Product
from models.store import Store
from schemas.checkout import CheckoutAccepted, CheckoutRequest, DispatchStatusOut
from schemas.menu import (
    CartItemAdd,
    CartItemUpdate,
    CartLineOut,
    CartOut,
    MenuCategoryOut,
    MenuOut,
    MenuProductOut,
    MenuStoreOut,
)
from services.cart import Cart, CartError, CartStore
from services.checkout import CheckoutValidationError, compose_order, format_brl
from services.dispatch import DispatchCoordinator, DispatchTracker, build_contact_link
from services.menu import MenuState, load_menu
from services.orders import refresh_cart
from tasks.order_tasks import schedule_submission

logger = get_logger(__name__)

router = APIRouter(prefix="/menu", tags=["menu"])

CART_SESSION_HEADER = "X-Cart-Session"
_SESSION_RE = re.compile(r"^[A-Za-z0-9_-]{8,64}$")
UNAVAILABLE_ITEMS = "Alguns itens não estão mais disponíveis e foram removidos do carrinho"


def get_cart_session(
    response: Response,
    x_cart_session: Optional[str] = Header(default=None, alias=CART_SESSION_HEADER),
) -> str:
    """One cart per storefront visit. A fresh id is issued when the client has none."""
    session_id = x_cart_session if x_cart_session and _SESSION_RE.match(x_cart_session) else uuid.uuid4().hex
    response.headers[CART_SESSION_HEADER] = session_id
    return session_id


def get_cart_store() -> CartStore:
    return CartStore(get_redis())


def _cart_out(store_id: str, session_id: str, cart: Cart) -> CartOut:
    return CartOut(
        store_id=store_id,
        session_id=session_id,
        items=[
            CartLineOut(
                product_id=line.product.id,
                name=line.product.name,
                unit_price=float(line.product.price),
                quantity=line.quantity,
                subtotal=float(line.subtotal),
                subtotal_display=format_brl(line.subtotal),
                image_url=line.product.image_url,
            )
            for line in cart.lines
        ],
        item_count=cart.item_count,
        total=float(cart.total),
        total_display=format_brl(cart.total),
    )


class ResponseNavigator:
    """Opens the WhatsApp link for an HTTP checkout.

    Browsers get a 303 redirect (direct navigation). API clients get the link
    in the response body and open it themselves.
    """

    def __init__(self, allow_redirect: bool):
        self.allow_redirect = allow_redirect
        self.redirect: Optional[RedirectResponse] = None
        self.link: Optional[str] = None

    def open(self, url: str) -> bool:
        if not self.allow_redirect:
            return False
        self.redirect = RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)
        return True

    def open_via_link(self, url: str) -> None:
        self.link = url


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


@router.get("/{store_id}", response_model=MenuOut)
def get_menu(store_id: str, db: Session = Depends(get_db)):
    view = load_menu(db, store_id)
    if view.state is MenuState.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=STORE_NOT_FOUND)
    if view.state is MenuState.UNAVAILABLE:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=STORE_UNAVAILABLE)

    store = view.store
    return MenuOut(
        store=MenuStoreOut(
            id=store.id,
            name=store.name,
            description=store.description,
            logo_url=store.logo_url,
            banner_url=store.banner_url,
            is_open=store.is_open,
            contact_url=build_contact_link(store.whatsapp),
        ),
        categories=[
            MenuCategoryOut(
                name=category,
                products=[
                    MenuProductOut(
                        id=p.id,
                        name=p.name,
                        description=p.description,
                        price=float(p.price),
                        price_display=format_brl(p.price),
                        image_url=p.image_url,
                    )
                    for p in products
                ],
            )
            for category, products in view.categories.items()
        ],
    )


@router.get("/{store_id}/cart", response_model=CartOut)
def get_cart(
    store: Store = Depends(get_storefront),
    session_id: str = Depends(get_cart_session),
    carts: CartStore = Depends(get_cart_store),
):
    return _cart_out(store.id, session_id, carts.load(store.id, session_id))


@router.post("/{store_id}/cart/items", response_model=CartOut)
def add_cart_item(
    data: CartItemAdd,
    store: Store = Depends(get_storefront),
    session_id: str = Depends(get_cart_session),
    carts: CartStore = Depends(get_cart_store),
    db: Session = Depends(get_db),
):
    product = db.query(Product).filter(Product.store_id == store.id, Product.id == data.product_id).one_or_none()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Produto não encontrado")

    cart = carts.load(store.id, session_id)
    try:
        cart.add_item(product)
    except CartError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Produto indisponível")
    carts.save(store.id, session_id, cart)
    return _cart_out(store.id, session_id, cart)


@router.patch("/{store_id}/cart/items/{product_id}", response_model=CartOut)
def update_cart_item(
    product_id: int,
    data: CartItemUpdate,
    store: Store = Depends(get_storefront),
    session_id: str = Depends(get_cart_session),
    carts: CartStore = Depends(get_cart_store),
):
    cart = carts.load(store.id, session_id)
    cart.update_quantity(product_id, data.quantity)
    carts.save(store.id, session_id, cart)
    return _cart_out(store.id, session_id, cart)


@router.delete("/{store_id}/cart/items/{product_id}", response_model=CartOut)
def remove_cart_item(
    product_id: int,
    store: Store = Depends(get_storefront),
    session_id: str = Depends(get_cart_session),
    carts: CartStore = Depends(get_cart_store),
):
    cart = carts.load(store.id, session_id)
    cart.remove_item(product_id)
    carts.save(store.id, session_id, cart)
    return _cart_out(store.id, session_id, cart)


@router.delete("/{store_id}/cart", response_model=CartOut)
def clear_cart(
    store: Store = Depends(get_storefront),
    session_id: str = Depends(get_cart_session),
    carts: CartStore = Depends(get_cart_store),
):
    carts.clear(store.id, session_id)
    return _cart_out(store.id, session_id, Cart())


@router.post("/{store_id}/checkout", response_model=CheckoutAccepted, status_code=status.HTTP_202_ACCEPTED)
def checkout(
    data: CheckoutRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    store: Store = Depends(get_storefront),
    session_id: str = Depends(get_cart_session),
    carts: CartStore = Depends(get_cart_store),
    db: Session = Depends(get_db),
    user_agent: Optional[str] = Header(default=None, alias="User-Agent"),
):
    """Send the order to the store's WhatsApp and record it in the background.

    Cart lines are repriced from the catalog first; products that are no
    longer offered are removed and the checkout is refused so the customer
    can review the cart. The persistence outcome is reported at
    ``status_url``; it never changes this response.
    """
    cart = carts.load(store.id, session_id)
    dropped = refresh_cart(db, store.id, cart)
    if dropped:
        carts.save(store.id, session_id, cart)

    errors = {}
    try:
        order = compose_order(store.id, cart, data, user_agent=user_agent)
    except CheckoutValidationError as e:
        errors = e.errors
    if dropped:
        errors["cart"] = UNAVAILABLE_ITEMS
    if errors:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"errors": errors},
            headers={CART_SESSION_HEADER: session_id},
        )

    navigator = ResponseNavigator(allow_redirect=_wants_html(request))
    coordinator = DispatchCoordinator(
        navigator,
        schedule=lambda job: schedule_submission(job, background_tasks),
        tracker=DispatchTracker(get_redis()),
        carts=carts,
    )
    result = coordinator.dispatch(order, store.whatsapp, session_id)
    logger.info("Checkout %s for store %s (navigated=%s)", result.ticket_id, store.id, result.navigated)

    if navigator.redirect is not None:
        navigator.redirect.headers[CART_SESSION_HEADER] = session_id
        return navigator.redirect

    return CheckoutAccepted(
        ticket_id=result.ticket_id,
        whatsapp_url=navigator.link or result.whatsapp_url,
        message=order.message,
        total=float(order.total),
        total_display=format_brl(order.total),
        status_url=str(request.url_for("checkout_status", store_id=store.id, ticket_id=result.ticket_id).path),
    )


@router.get("/{store_id}/checkout/{ticket_id}", response_model=DispatchStatusOut, name="checkout_status")
def checkout_status(store_id: str, ticket_id: str):
    data = DispatchTracker(get_redis()).status(ticket_id)
    if not data or data.get("store_id") != store_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pedido não encontrado")
    return DispatchStatusOut(**data)
