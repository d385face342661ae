"""Web panels for the airlock.

Renders both side panels in the browser, forwards OPEN button presses to
the scheduler as UI events and pushes live state over Server-Sent Events
(SSE). Simulated lock sensors can be toggled from the page.
"""

from __future__ import annotations

import asyncio
import json
import logging

from aiohttp import web

from coordinator import Coordinator
from devices import DeviceRegistry, SimulatedDeviceRegistry
from panel import BUTTON
from scheduler import UiEvent
from state import AirlockState, StateEvent

_LOGGER = logging.getLogger(__name__)

SSE_HEARTBEAT_INTERVAL = 30  # seconds

INDEX_HTML = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Airlock</title>
<style>
  body { font-family: monospace; background: #222; color: #eee; }
  .panels { display: flex; gap: 3em; }
  .panel { position: relative; font-size: 20px; }
  .el { position: absolute; box-sizing: border-box; white-space: pre; overflow: hidden; }
  .el.centered { text-align: center; }
  .el.button { cursor: pointer; display: flex; align-items: center; justify-content: center; }
</style>
</head>
<body>
<h1>Airlock</h1>
<p>Door: <span id="door">?</span></p>
<div class="panels" id="panels"></div>
<h2>Sensors</h2>
<div id="sensors"></div>
<script>
const CELL_W = 12, CELL_H = 20;
const COLORS = {white:"#f0f0f0", black:"#111", gray:"#4c4c4c", lightGray:"#999",
  red:"#cc4c4c", green:"#57a64e", yellow:"#dede6c", orange:"#f2b233",
  pink:"#f2b2cc", purple:"#b266e5"};

function drawPanel(p) {
  const div = document.createElement("div");
  div.className = "panel";
  div.style.width = (p.width * CELL_W) + "px";
  div.style.height = (p.height * CELL_H) + "px";
  for (const e of p.elements) {
    const el = document.createElement("div");
    el.className = "el " + e.kind + (e.centered ? " centered" : "");
    el.style.left = ((e.x - 1) * CELL_W) + "px";
    el.style.top = ((e.y - 1) * CELL_H) + "px";
    el.style.width = (e.width * CELL_W) + "px";
    el.style.height = (e.height * CELL_H) + "px";
    el.style.zIndex = e.graphic_order + 10;
    if (e.bg) el.style.background = COLORS[e.bg];
    if (e.fg) el.style.color = COLORS[e.fg];
    el.textContent = e.text;
    if (e.kind === "button" && e.reactive) {
      el.onclick = () => fetch(`/api/panels/${p.name}/press`, {method: "POST"});
    }
    div.appendChild(el);
  }
  return div;
}

function drawSensors(sensors) {
  const box = document.getElementById("sensors");
  box.innerHTML = "";
  for (const [name, active] of Object.entries(sensors)) {
    const b = document.createElement("button");
    b.textContent = `${name}: ${active ? "active" : "inactive"}`;
    b.onclick = () => fetch(`/api/sensors/${name}`, {
      method: "POST", headers: {"Content-Type": "application/json"},
      body: JSON.stringify({active: !active})});
    box.appendChild(b);
  }
}

async function refresh() {
  const data = await (await fetch("/api/state")).json();
  document.getElementById("door").textContent = data.state.door_state;
  const panels = document.getElementById("panels");
  panels.innerHTML = "";
  for (const name of ["left", "right"]) panels.appendChild(drawPanel(data.panels[name]));
  drawSensors(data.sensors);
}

refresh();
new EventSource("/api/events/stream").onmessage = refresh;
setInterval(refresh, 1000);
</script>
</body>
</html>
"""


class Dashboard:
    """Web panels with SSE for live updates."""

    def __init__(
        self,
        coordinator: Coordinator,
        devices: DeviceRegistry,
        host: str = "0.0.0.0",
        port: int = 8099,
    ):
        self._coordinator = coordinator
        self._state = coordinator.state
        self._scheduler = coordinator.scheduler
        self._devices = devices
        self._host = host
        self._port = port
        self._app = web.Application()
        self._runner: web.AppRunner | None = None
        self._sse_clients: list[web.StreamResponse] = []

        # Register state change callback for SSE
        self._state.register_callback(self._on_state_change)

        # Setup routes
        self._app.router.add_get("/", self._handle_index)
        self._app.router.add_get("/api/state", self._handle_state)
        self._app.router.add_get("/api/events", self._handle_events)
        self._app.router.add_get("/api/events/stream", self._handle_sse)
        self._app.router.add_post("/api/panels/{side}/press", self._handle_press)
        self._app.router.add_post("/api/sensors/{name}", self._handle_sensor)

    @property
    def app(self) -> web.Application:
        return self._app

    def _simulated_sensors(self) -> dict:
        if isinstance(self._devices, SimulatedDeviceRegistry):
            return self._devices.simulated_sensors()
        return {}

    def _snapshot(self) -> dict:
        return {
            "state": self._state.state.to_dict(),
            "airlock": self._coordinator.get_status(),
            "panels": {side.name: side.panel.snapshot() for side in self._coordinator.sides},
            "sensors": {
                name: sensor.is_active()
                for name, sensor in self._simulated_sensors().items()
            },
            "scheduler": self._scheduler.get_status(),
        }

    def _on_state_change(self, state: AirlockState, event: StateEvent) -> None:
        """Push state update to all SSE clients."""
        if not self._sse_clients:
            return
        data = {
            "type": "state_update",
            "state": state.to_dict(),
            "event": event.to_dict(),
        }
        asyncio.ensure_future(self._broadcast_sse(data))

    async def _broadcast_sse(self, data: dict) -> None:
        """Send data to all connected SSE clients."""
        payload = f"data: {json.dumps(data)}\n\n"
        dead_clients = []

        for client in self._sse_clients:
            try:
                await client.write(payload.encode("utf-8"))
            except (ConnectionResetError, ConnectionAbortedError):
                dead_clients.append(client)

        for client in dead_clients:
            if client in self._sse_clients:
                self._sse_clients.remove(client)

    async def _handle_index(self, request: web.Request) -> web.Response:
        """Serve the panels page."""
        return web.Response(text=INDEX_HTML, content_type="text/html")

    async def _handle_state(self, request: web.Request) -> web.Response:
        """Return current state as JSON."""
        return web.json_response(self._snapshot())

    async def _handle_events(self, request: web.Request) -> web.Response:
        """Return recent events as JSON."""
        try:
            count = int(request.query.get("count", "50"))
        except ValueError:
            raise web.HTTPBadRequest(text="count must be an integer")
        return web.json_response({
            "events": self._state.event_log.recent(count),
        })

    async def _handle_press(self, request: web.Request) -> web.Response:
        """Forward an OPEN button press to the side's panel."""
        side = request.match_info["side"]
        if side not in {s.name for s in self._coordinator.sides}:
            raise web.HTTPNotFound(text=f"Unknown side {side}")
        self._scheduler.post_event(UiEvent(target=side, element=BUTTON))
        _LOGGER.debug("Button press on %s panel queued", side)
        return web.json_response({"queued": True}, status=202)

    async def _handle_sensor(self, request: web.Request) -> web.Response:
        """Set the state of a simulated lock sensor."""
        name = request.match_info["name"]
        sensor = self._simulated_sensors().get(name)
        if sensor is None:
            raise web.HTTPNotFound(text=f"No simulated sensor {name}")
        try:
            body = await request.json()
        except ValueError:
            raise web.HTTPBadRequest(text="Body must be JSON")
        active = body.get("active") if isinstance(body, dict) else None
        if not isinstance(active, bool):
            raise web.HTTPBadRequest(text='Body must contain a boolean "active"')
        sensor.set_active(active)
        return web.json_response({"name": name, "active": active})

    async def _handle_sse(self, request: web.Request) -> web.StreamResponse:
        """Handle SSE connection from browser."""
        response = web.StreamResponse(
            status=200,
            reason="OK",
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "Access-Control-Allow-Origin": "*",
            },
        )
        await response.prepare(request)

        # Send current state immediately
        initial = {
            "type": "initial_state",
            "state": self._state.state.to_dict(),
            "events": self._state.event_log.recent(20),
        }
        await response.write(f"data: {json.dumps(initial)}\n\n".encode("utf-8"))

        self._sse_clients.append(response)
        _LOGGER.debug("SSE client connected (%d total)", len(self._sse_clients))

        try:
            # Keep connection alive with heartbeats
            while True:
                await asyncio.sleep(SSE_HEARTBEAT_INTERVAL)
                try:
                    await response.write(b": heartbeat\n\n")
                except (ConnectionResetError, ConnectionAbortedError):
                    break
        except asyncio.CancelledError:
            pass
        finally:
            if response in self._sse_clients:
                self._sse_clients.remove(response)
            _LOGGER.debug(
                "SSE client disconnected (%d remaining)", len(self._sse_clients)
            )

        return response

    async def start(self) -> None:
        """Start the web server."""
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        _LOGGER.info(
            "Panels running at http://%s:%d",
            self._host,
            self._port,
        )

    async def stop(self) -> None:
        """Stop the web server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        _LOGGER.info("Dashboard stopped")

    async def serve(self) -> None:
        """Run the web server until the task is cancelled."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()
