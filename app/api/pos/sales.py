# Register endpoints: settle a sale and look up sales and store discounts
from flask import Blueprint, jsonify, request
from sqlalchemy import select

from app.errors import NotFoundError, ValidationError
from app.extensions import db
from app.models import Discount, Sale
from app.services.settlement import PaymentLine, SaleLine, SaleRequest, settle_sale
from app.utils.admin_auth import admin_required
from app.utils.request_parsing import (
    current_clock,
    current_settings,
    get_json_body,
    parse_date,
    parse_int,
    parse_time,
    require_fields,
)

pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")

ITEM_TYPES = ("SERVICE", "PRODUCT")


def serialize_sale(sale):
    return {
        "id": sale.id,
        "sale_number": sale.sale_number,
        "sale_key": sale.sale_key,
        "customer_id": sale.customer_id,
        "customer_name": sale.customer_name,
        "reservation_id": sale.reservation_id,
        "subtotal": sale.subtotal,
        "discount_id": sale.discount_id,
        "discount_amount": sale.discount_amount,
        "coupon": (
            {"id": sale.coupon.id, "code": sale.coupon.code, "name": sale.coupon.name}
            if sale.coupon
            else None
        ),
        "coupon_discount": sale.coupon_discount,
        "tax_rate": sale.tax_rate,
        "tax_amount": sale.tax_amount,
        "total_amount": sale.total_amount,
        "payment_method": sale.payment_method,
        "payment_status": sale.payment_status,
        "sale_date": sale.sale_date.isoformat(),
        "sale_time": sale.sale_time,
        "note": sale.note,
        "items": [
            {
                "item_type": item.item_type,
                "service_id": item.service_id,
                "name": item.name,
                "category": item.category,
                "duration": item.duration,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "subtotal": item.subtotal,
            }
            for item in sale.items
        ],
        "payments": [
            {"payment_method": p.payment_method, "amount": p.amount}
            for p in sale.payments
        ],
    }


def _parse_sale_lines(raw):
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")
    lines = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("Each item must be an object")
        require_fields(entry, "name", "unit_price")
        item_type = entry.get("item_type", "SERVICE")
        if item_type not in ITEM_TYPES:
            raise ValidationError(f"item_type must be one of {', '.join(ITEM_TYPES)}")
        lines.append(
            SaleLine(
                name=entry["name"],
                unit_price=parse_int(entry["unit_price"], "unit_price", minimum=0),
                quantity=parse_int(entry.get("quantity", 1), "quantity", minimum=1),
                item_type=item_type,
                service_id=(
                    parse_int(entry["service_id"], "service_id")
                    if entry.get("service_id") is not None
                    else None
                ),
                category=entry.get("category"),
                duration=(
                    parse_int(entry["duration"], "duration", minimum=0)
                    if entry.get("duration") is not None
                    else None
                ),
            )
        )
    return lines


def _parse_payments(raw):
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("payments must be a list")
    payments = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("payment_method"):
            raise ValidationError("Each payment needs a payment_method and an amount")
        payments.append(
            PaymentLine(
                method=entry["payment_method"],
                amount=parse_int(entry.get("amount"), "amount", minimum=1),
            )
        )
    return payments


def _optional_int(data, field):
    return parse_int(data[field], field) if data.get(field) is not None else None


@pos_bp.route("/sales", methods=["POST"])
@admin_required
def create_sale():
    """
    Settle a sale at the register
    ---
    tags:
      - POS
    security:
      - AdminKey: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/SalePayload'
    responses:
      201:
        description: Sale recorded; the coupon, if any, is consumed once
      200:
        description: A sale with this sale_key already exists and is returned unchanged
      400:
        description: Invalid items, payments not matching the total, or coupon rejected
      404:
        description: Discount or reservation not found
    """
    data = get_json_body()
    require_fields(data, "sale_key", "items")

    sale_request = SaleRequest(
        sale_key=str(data["sale_key"]).strip(),
        lines=_parse_sale_lines(data["items"]),
        payments=_parse_payments(data.get("payments")),
        customer_id=_optional_int(data, "customer_id"),
        customer_name=data.get("customer_name"),
        reservation_id=_optional_int(data, "reservation_id"),
        discount_id=_optional_int(data, "discount_id"),
        discount_amount=parse_int(
            data.get("discount_amount", 0), "discount_amount", minimum=0
        ),
        coupon_code=data.get("coupon_code") or None,
        note=data.get("note"),
        sale_date=parse_date(data["sale_date"], "sale_date") if data.get("sale_date") else None,
        sale_time=parse_time(data["sale_time"], "sale_time") if data.get("sale_time") else None,
    )

    result = settle_sale(db.session, current_settings(), current_clock(), sale_request)
    return (
        jsonify(
            {
                "status": "success",
                "created": result.created,
                "sale": serialize_sale(result.sale),
            }
        ),
        201 if result.created else 200,
    )


@pos_bp.route("/sales/<int:sale_id>", methods=["GET"])
@admin_required
def get_sale(sale_id):
    """
    Get one sale with items and payments
    ---
    tags:
      - POS
    security:
      - AdminKey: []
    parameters:
      - name: sale_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Sale detail
      404:
        description: Sale not found
    """
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return jsonify({"sale": serialize_sale(sale)}), 200


@pos_bp.route("/sales", methods=["GET"])
@admin_required
def list_sales():
    """
    List sales for a date range
    ---
    tags:
      - POS
    security:
      - AdminKey: []
    parameters:
      - name: from
        in: query
        type: string
      - name: to
        in: query
        type: string
      - name: customer_id
        in: query
        type: integer
    responses:
      200:
        description: Sales, newest first
    """
    filters = []
    if request.args.get("from"):
        filters.append(Sale.sale_date >= parse_date(request.args["from"], "from"))
    if request.args.get("to"):
        filters.append(Sale.sale_date <= parse_date(request.args["to"], "to"))
    if request.args.get("customer_id"):
        filters.append(
            Sale.customer_id == parse_int(request.args["customer_id"], "customer_id")
        )

    sales = db.session.scalars(
        select(Sale)
        .where(*filters)
        .order_by(Sale.sale_date.desc(), Sale.sale_time.desc())
    ).all()
    return jsonify({"sales": [serialize_sale(s) for s in sales]}), 200


@pos_bp.route("/discounts", methods=["GET"])
@admin_required
def list_discounts():
    """
    Active store discounts for the register
    ---
    tags:
      - POS
    security:
      - AdminKey: []
    responses:
      200:
        description: Active discounts in display order
    """
    discounts = db.session.scalars(
        select(Discount)
        .where(Discount.is_active.is_(True))
        .order_by(Discount.display_order, Discount.id)
    ).all()
    return (
        jsonify(
            {
                "discounts": [
                    {
                        "id": d.id,
                        "name": d.name,
                        "type": d.discount_type,
                        "value": d.value,
                        "description": d.description,
                    }
                    for d in discounts
                ]
            }
        ),
        200,
    )
