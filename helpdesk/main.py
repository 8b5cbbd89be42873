from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from helpdesk.api.routes import auth, ping, tickets
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.dependencies.auth import AuthService
from helpdesk.notifications import EmailSettings, NotificationDispatcher, SmtpEmailSender
from helpdesk.tickets.repository import FileTicketRepository
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.summary import SummaryGenerator, SummarySettings


def build_ticket_service(settings: Settings, dispatcher: NotificationDispatcher) -> TicketService:
    repository = FileTicketRepository(settings.storage_file_path)
    summarizer = SummaryGenerator(SummarySettings.from_settings(settings))
    return TicketService(repository, summarizer=summarizer, notifications=dispatcher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    dispatcher = NotificationDispatcher(
        SmtpEmailSender(EmailSettings.from_settings(settings)),
        max_queue_size=settings.notification_queue_size,
        workers=settings.notification_workers,
    )
    await dispatcher.start()

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.notification_dispatcher = dispatcher
    app.state.auth_service = AuthService(
        username=settings.auth_username,
        password=settings.auth_password,
        token_ttl=timedelta(hours=settings.auth_token_ttl_hours),
    )
    app.state.ticket_service = build_ticket_service(settings, dispatcher)
    logger.info("%s started (environment=%s)", settings.app_name, settings.environment)
    try:
        yield
    finally:
        await dispatcher.stop()
        shutdown_tracer(tracer_provider)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    if settings.cors_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allowed_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT"],
            allow_headers=["Content-Type", "Authorization"],
        )
    app.include_router(ping.router)
    app.include_router(auth.router)
    app.include_router(tickets.router)
    return app


app = create_app()
