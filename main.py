from app.api.admin.calendar import admin_calendar_bp
from app.api.admin.reservations import admin_reservations_bp
from app.api.booking.availability import availability_bp
from app.api.booking.calendar import calendar_bp
from app.api.booking.reservations import reservations_bp
from app.api.coupons.validate import coupons_bp
from app.api.pos.sales import pos_bp
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import os

load_dotenv()
from app.config import Config  # noqa: E402
from app.errors import register_error_handlers  # noqa: E402
from app.extensions import db  # noqa: E402
from app.models import Base  # noqa: E402


def create_app(config_overrides=None):
    print("Starting create_app()")
    app = Flask(__name__)
    print(f"Flask app created: {app}")
    try:
        print("Loading config...")
        app.config.from_object(Config)
        if config_overrides:
            app.config.update(config_overrides)
        print("Config loaded successfully")
        print(f"Config items: {len(app.config)} items loaded")

        print("Initializing CORS...")
        CORS(app)
        print("CORS initialized")

        print("Initializing database...")
        db.init_app(app)
        if os.environ.get("CREATE_TABLES") == "True":
            with app.app_context():
                Base.metadata.create_all(bind=db.engine)
            print("Tables created")
        print("Database initialized")

        print("Initializing Swagger/OpenAPI documentation...")
        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host

        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)
        print("Swagger initialized - Access at /api/docs")

        register_error_handlers(app)
        print("Error handlers registered")

        print("Registering blueprints...")
        blueprints = [
            availability_bp,
            reservations_bp,
            calendar_bp,
            coupons_bp,
            admin_reservations_bp,
            admin_calendar_bp,
            pos_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            print(f"  ✓ {bp.name} registered")

        print("All blueprints registered successfully")
        print("Adding root route...")

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
                schema:
                  type: object
                  properties:
                    status:
                      type: string
                    message:
                      type: string
                    docs_url:
                      type: string
            """
            return {
                "status": "ok",
                "message": "Booking engine is running!",
                "docs_url": "/api/docs",
            }, 200

        print("Root route added")
        print(f"Total routes registered: {len(list(app.url_map.iter_rules()))}")

    except Exception as e:
        print(f"Error during app creation: {e}")
        print(f"Error type: {type(e)}")
        import traceback

        print(f"Full traceback: {traceback.format_exc()}")
        raise

    print("create_app() completed successfully")
    return app


app = create_app()
print(f"App created: {app}")
print(f"App debug: {app.debug}")


if __name__ == "__main__":
    # Create a .env containing:
    #       MYSQL_PUBLIC_URL= mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/salon_booking
    #       ADMIN_API_KEY= <staff key sent as X-ADMIN-KEY>
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
