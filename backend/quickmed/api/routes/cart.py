"""Cart: the logged-in user's basket. Quantities are checked against totalStock."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, get_current_user
from quickmed.core.exceptions import BusinessError
from quickmed.models.cart import CartItem
from quickmed.models.product import Product
from quickmed.models.user import User
from quickmed.schemas.cart import CartAdd, CartItemOut, CartOut, CartQuantity
from quickmed.schemas.common import ok

router = APIRouter()


def _cart(db: Session, user: User) -> dict:
    rows = (
        db.query(CartItem)
        .filter(CartItem.user_id == user.id)
        .order_by(CartItem.id)
        .all()
    )
    items = []
    for row in rows:
        if row.product is None:
            continue
        price = float(row.product.price)
        items.append(CartItemOut(
            id=row.id,
            product_id=row.product_id,
            name=row.product.name,
            price=price,
            quantity=row.quantity,
            subtotal=round(price * row.quantity, 2),
            available=row.product.total_stock,
        ))
    return ok(CartOut(items=items, total=round(sum(i.subtotal for i in items), 2)))


def _check_available(product: Product, quantity: int):
    if quantity > product.total_stock:
        raise BusinessError.bad_request(
            f"Only {product.total_stock} units of {product.name} are available"
        )


@router.get("")
def get_cart(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _cart(db, current_user)


@router.post("", status_code=status.HTTP_201_CREATED)
def add_to_cart(data: CartAdd, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Adding a product already in the cart increases its quantity."""
    product = db.query(Product).filter(Product.id == data.product_id).first()
    if not product:
        raise BusinessError.not_found("Product")

    item = (
        db.query(CartItem)
        .filter(CartItem.user_id == current_user.id, CartItem.product_id == product.id)
        .first()
    )
    quantity = data.quantity + (item.quantity if item else 0)
    _check_available(product, quantity)
    if item:
        item.quantity = quantity
    else:
        db.add(CartItem(user_id=current_user.id, product_id=product.id, quantity=quantity))
    db.commit()
    return _cart(db, current_user)


@router.patch("/{item_id}")
def update_cart_item(
    item_id: int,
    data: CartQuantity,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == current_user.id).first()
    if not item:
        raise BusinessError.not_found("Cart item")
    _check_available(item.product, data.quantity)
    item.quantity = data.quantity
    db.commit()
    return _cart(db, current_user)


@router.delete("/{item_id}")
def remove_cart_item(item_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == current_user.id).first()
    if not item:
        raise BusinessError.not_found("Cart item")
    db.delete(item)
    db.commit()
    return _cart(db, current_user)


@router.delete("")
def clear_cart(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    db.query(CartItem).filter(CartItem.user_id == current_user.id).delete(synchronize_session=False)
    db.commit()
    return _cart(db, current_user)
