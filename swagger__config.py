"""
Swagger/OpenAPI configuration for the Salon Booking API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Salon Booking API",
        "description": "Availability, reservations, coupons and point-of-sale settlement for a single salon",
        "contact": {"email": "support@salonapp.com"},
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "AdminKey": {
            "type": "apiKey",
            "name": "X-ADMIN-KEY",
            "in": "header",
            "description": "Staff key for admin and register endpoints",
        }
    },
    "tags": [
        {"name": "Availability", "description": "Bookable slots for a day"},
        {"name": "Reservations", "description": "Customer booking, changes and cancellation"},
        {"name": "Calendar", "description": "Public opening calendar"},
        {"name": "Coupons", "description": "Coupon validation"},
        {"name": "Admin Reservations", "description": "Staff booking and edits"},
        {"name": "Admin Calendar", "description": "Closures and special opening days"},
        {"name": "POS", "description": "Register settlement and store discounts"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "error"},
                "kind": {"type": "string", "example": "policy_error"},
                "message": {"type": "string"},
                "reason": {"type": "string", "example": "past_cutoff"},
                "retryable": {"type": "boolean"},
                "conflict": {
                    "type": "object",
                    "properties": {
                        "start": {"type": "string", "example": "10:00"},
                        "end": {"type": "string", "example": "11:00"},
                    },
                },
            },
        },
        "Slot": {
            "type": "object",
            "properties": {
                "time": {"type": "string", "example": "10:30"},
                "available": {"type": "boolean"},
                "reason": {"type": "string", "example": "overlap"},
            },
        },
        "Availability": {
            "type": "object",
            "properties": {
                "date": {"type": "string", "example": "2026-10-21"},
                "weekday": {"type": "integer", "example": 2},
                "open": {"type": "boolean"},
                "reason": {"type": "string", "example": "weekly_closed_day"},
                "hours": {
                    "type": "object",
                    "properties": {
                        "open_time": {"type": "string", "example": "10:00"},
                        "close_time": {"type": "string", "example": "21:00"},
                        "last_booking_time": {"type": "string", "example": "20:00"},
                    },
                },
                "slots": {"type": "array", "items": {"$ref": "#/definitions/Slot"}},
                "total_price": {"type": "integer", "example": 5500},
                "total_duration": {"type": "integer", "example": 60},
            },
        },
        "ReservationPayload": {
            "type": "object",
            "required": ["customer_id", "service_ids", "date", "start_time"],
            "properties": {
                "customer_id": {"type": "integer", "example": 42},
                "customer_name": {"type": "string"},
                "customer_email": {"type": "string", "format": "email"},
                "service_ids": {
                    "type": "array",
                    "items": {"type": "integer"},
                    "example": [1, 3],
                },
                "date": {"type": "string", "example": "2026-10-21"},
                "start_time": {"type": "string", "example": "11:00"},
                "end_time": {
                    "type": "string",
                    "description": "Staff only: explicit end time",
                },
                "note": {"type": "string"},
                "coupon_code": {"type": "string", "example": "WELCOME20"},
                "coupon_required": {
                    "type": "boolean",
                    "description": "Fail the booking when the coupon is rejected",
                },
            },
        },
        "Reservation": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "customer_id": {"type": "integer"},
                "date": {"type": "string"},
                "start_time": {"type": "string"},
                "end_time": {"type": "string"},
                "status": {
                    "type": "string",
                    "enum": ["CONFIRMED", "CANCELLED", "COMPLETED", "NO_SHOW"],
                },
                "total_price": {"type": "integer"},
                "total_duration": {"type": "integer"},
                "coupon_code": {"type": "string"},
                "discount_amount": {"type": "integer"},
                "note": {"type": "string"},
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "service_id": {"type": "integer"},
                            "service_name": {"type": "string"},
                            "category": {"type": "string"},
                            "price": {"type": "integer"},
                            "duration": {"type": "integer"},
                        },
                    },
                },
            },
        },
        "CouponValidation": {
            "type": "object",
            "properties": {
                "valid": {"type": "boolean"},
                "discount_amount": {"type": "integer", "example": 2000},
                "applicable_subtotal": {"type": "integer", "example": 10000},
                "message": {"type": "string"},
                "coupon": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "integer"},
                        "code": {"type": "string"},
                        "name": {"type": "string"},
                        "type": {"type": "string", "enum": ["PERCENTAGE", "FIXED"]},
                        "value": {"type": "integer"},
                    },
                },
            },
        },
        "SalePayload": {
            "type": "object",
            "required": ["sale_key", "items"],
            "properties": {
                "sale_key": {
                    "type": "string",
                    "description": "Client-generated key; resubmitting returns the same sale",
                },
                "customer_id": {"type": "integer"},
                "customer_name": {"type": "string"},
                "reservation_id": {"type": "integer"},
                "discount_id": {"type": "integer"},
                "discount_amount": {"type": "integer"},
                "coupon_code": {"type": "string"},
                "sale_date": {"type": "string"},
                "sale_time": {"type": "string"},
                "note": {"type": "string"},
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["name", "unit_price"],
                        "properties": {
                            "item_type": {"type": "string", "enum": ["SERVICE", "PRODUCT"]},
                            "service_id": {"type": "integer"},
                            "name": {"type": "string"},
                            "category": {"type": "string"},
                            "duration": {"type": "integer"},
                            "quantity": {"type": "integer"},
                            "unit_price": {"type": "integer"},
                        },
                    },
                },
                "payments": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "payment_method": {"type": "string", "example": "CASH"},
                            "amount": {"type": "integer"},
                        },
                    },
                },
            },
        },
    },
}
