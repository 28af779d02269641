"""HTTP control surface: start, stop and status over a small JSON API."""

import logging

from aiohttp import web

from discdup.core.orchestrator import DriveOrchestrator

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY = web.AppKey("orchestrator", DriveOrchestrator)


async def start_copying(request: web.Request) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]
    if not orchestrator.start():
        return web.json_response(
            {"success": False, "message": "The copy process is already running."},
            status=400,
        )
    return web.json_response({"success": True, "message": "Copy process started."})


async def stop_copying(request: web.Request) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]
    if not orchestrator.stop():
        return web.json_response(
            {"success": True, "message": "The copy process was already stopped."},
        )
    return web.json_response(
        {
            "success": True,
            "message": "Stop requested. The process halts after the current pass.",
        },
    )


async def get_status(request: web.Request) -> web.Response:
    return web.json_response(request.app[ORCHESTRATOR_KEY].get_status())


async def _prepare_destination(app: web.Application) -> None:
    config = app[ORCHESTRATOR_KEY].config
    config.ensure_directories()
    logger.info(f"Destination root: {config.destination_root}")


async def _finish_pass(app: web.Application) -> None:
    orchestrator = app[ORCHESTRATOR_KEY]
    if orchestrator.stop():
        logger.info("Server shutting down, waiting for the current pass to finish")
    if orchestrator.loop_task is not None:
        await orchestrator.wait_stopped()


def create_app(orchestrator: DriveOrchestrator) -> web.Application:
    """Build the aiohttp application around an orchestrator."""
    app = web.Application()
    app[ORCHESTRATOR_KEY] = orchestrator
    app.router.add_post("/api/start", start_copying)
    app.router.add_post("/api/stop", stop_copying)
    app.router.add_get("/api/status", get_status)
    app.on_startup.append(_prepare_destination)
    app.on_cleanup.append(_finish_pass)
    return app
