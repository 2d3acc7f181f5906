from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shopdesk import __version__
from shopdesk.shared.config import init_models, settings
from shopdesk.shared.errors import register_error_handlers
from shopdesk.shared.observability import setup_observability
from shopdesk.shared.security import limiter

# IMPORTANT: import models so they register with Base
from shopdesk.services.auth_service import models as auth_models  # noqa: F401
from shopdesk.services.customer_service import models as customer_models  # noqa: F401
from shopdesk.services.product_service import models as product_models  # noqa: F401
from shopdesk.services.digital_file_service import models as digital_file_models  # noqa: F401
from shopdesk.services.order_service import models as order_models  # noqa: F401
from shopdesk.services.payment_service import models as payment_models  # noqa: F401
from shopdesk.services.purchase_service import models as purchase_models  # noqa: F401
from shopdesk.services.notification_service import models as notification_models  # noqa: F401

from shopdesk.services.auth_service.router import router as auth_router
from shopdesk.services.customer_service.router import router as customer_router
from shopdesk.services.digital_file_service.router import router as digital_file_router
from shopdesk.services.notification_service.router import router as notification_router
from shopdesk.services.order_service.router import router as order_router
from shopdesk.services.payment_service.router import router as payment_router
from shopdesk.services.purchase_service.router import router as purchase_router


def create_app() -> FastAPI:
    app = FastAPI(
        title="Shopdesk",
        version=__version__,
        description="Order, payment and digital delivery back office.",
    )

    setup_observability(app, settings.SERVICE_NAME)

    app.state.limiter = limiter
    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix="/api/auth")
    app.include_router(order_router, prefix="/api/orders")
    app.include_router(customer_router, prefix="/api/customers")
    app.include_router(payment_router, prefix="/api/payments")
    app.include_router(digital_file_router, prefix="/api/digital-files")
    app.include_router(purchase_router, prefix="/api/purchases")
    app.include_router(notification_router, prefix="/api/notifications")

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"service": settings.SERVICE_NAME, "status": "running"}

    @app.on_event("startup")
    async def startup_event() -> None:
        await init_models()

    return app


app = create_app()
