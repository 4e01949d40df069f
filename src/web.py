"""HTTP layer: routes over a TodoStore, HTML page, counters and request stats.

Routes:
    GET       /               -> HTML list with the add form
    POST      /add            -> add todo from form field "title", redirect to /
    GET|POST  /done/{id}      -> toggle done, redirect to /
    GET|POST  /clear/{id}     -> delete, redirect to /
    GET       /debug/metrics  -> named counters as JSON
    GET       /debug/stats    -> request statistics as JSON
"""
from __future__ import annotations

import logging
import os
import threading
import time
from collections import Counter
from typing import Any, Dict

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse, RedirectResponse
from jinja2 import DictLoader, Environment, select_autoescape

from storage import StoreError, TodoNotFoundError, TodoStore

logger = logging.getLogger(__name__)

BASE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{% block title %}Todo{% endblock %}</title>
  <style>
    body { font-family: sans-serif; max-width: 40em; margin: 2em auto; }
    li.done span.title { text-decoration: line-through; color: #888; }
    li form { display: inline; }
  </style>
</head>
<body>
{% block content %}{% endblock %}
</body>
</html>
"""

INDEX_TEMPLATE = """{% extends "base.html" %}
{% block content %}
<h1>Todo</h1>
<form method="post" action="/add">
  <input type="text" name="title" placeholder="What needs doing?" autofocus required>
  <button type="submit">Add</button>
</form>
{% if todos %}
<ul>
  {% for todo in todos %}
  <li class="{{ 'done' if todo.done else 'open' }}">
    <form method="post" action="/done/{{ todo.id }}"><button type="submit">{{ 'Undo' if todo.done else 'Done' }}</button></form>
    <span class="title">{{ todo.title }}</span>
    <form method="post" action="/clear/{{ todo.id }}"><button type="submit">Clear</button></form>
  </li>
  {% endfor %}
</ul>
{% else %}
<p>Nothing to do.</p>
{% endif %}
{% endblock %}
"""

templates = Environment(
    loader=DictLoader({'base.html': BASE_TEMPLATE, 'index.html': INDEX_TEMPLATE}),
    autoescape=select_autoescape(default=True),
)


class Counters:
    """Named, thread-safe integer counters."""

    def __init__(self):
        self._lock = threading.Lock()
        self._values: Dict[str, int] = {}

    def inc(self, name: str, n: int = 1) -> None:
        with self._lock:
            self._values[name] = self._values.get(name, 0) + n

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._values)


class RequestStats:
    """Request counts and timings since startup."""

    def __init__(self):
        self._lock = threading.Lock()
        self.started = time.time()
        self.total_count = 0
        self.total_response_time = 0.0
        self.status_code_count: Counter = Counter()

    def record(self, status_code: int, elapsed: float) -> None:
        with self._lock:
            self.total_count += 1
            self.total_response_time += elapsed
            self.status_code_count[str(status_code)] += 1

    def data(self) -> Dict[str, Any]:
        with self._lock:
            average = self.total_response_time / self.total_count if self.total_count else 0.0
            return {
                'pid': os.getpid(),
                'uptime_sec': round(time.time() - self.started, 3),
                'total_count': self.total_count,
                'status_code_count': dict(self.status_code_count),
                'total_response_time_sec': round(self.total_response_time, 6),
                'average_response_time_sec': round(average, 6),
            }


def _remote_addr(request: Request) -> str:
    forwarded = request.headers.get('x-forwarded-for')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else '-'


def _parse_id(raw: str) -> int:
    if not (raw.isascii() and raw.isdigit()):
        logger.warning("invalid todo id %r", raw)
        raise HTTPException(status_code=400, detail=f'invalid id: {raw}')
    return int(raw)


def create_app(store: TodoStore) -> FastAPI:
    app = FastAPI(title="Todo", version="0.1.0", docs_url=None, redoc_url=None)
    counters = Counters()
    stats = RequestStats()
    app.state.store = store
    app.state.counters = counters
    app.state.stats = stats

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - start
            stats.record(status_code, elapsed)
            logger.info("%s %s %s %d %.2fms", _remote_addr(request), request.method,
                        request.url.path, status_code, elapsed * 1000)

    # added last so it wraps the access log middleware
    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        counters.inc("n_index")
        try:
            todos = store.list()
        except StoreError as exc:
            logger.exception("error listing todos")
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return HTMLResponse(templates.get_template('index.html').render(todos=todos))

    @app.post("/add")
    def add(title: str = Form("")) -> RedirectResponse:
        counters.inc("n_add")
        title = title.strip()
        if not title:
            raise HTTPException(status_code=400, detail='title required')
        try:
            store.add(title)
        except StoreError as exc:
            logger.exception("error storing todo")
            raise HTTPException(status_code=500, detail='Internal Error') from exc
        return RedirectResponse(url="/", status_code=302)

    @app.api_route("/done/{todo_id}", methods=["GET", "POST"])
    def done(todo_id: str) -> RedirectResponse:
        counters.inc("n_done")
        tid = _parse_id(todo_id)
        try:
            store.toggle(tid)
        except TodoNotFoundError as exc:
            logger.warning("toggle of unknown todo %d", tid)
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except StoreError as exc:
            logger.exception("error toggling todo %d", tid)
            raise HTTPException(status_code=500, detail='Internal Error') from exc
        return RedirectResponse(url="/", status_code=302)

    @app.api_route("/clear/{todo_id}", methods=["GET", "POST"])
    def clear(todo_id: str) -> RedirectResponse:
        counters.inc("n_clear")
        tid = _parse_id(todo_id)
        try:
            store.delete(tid)
        except TodoNotFoundError as exc:
            logger.warning("delete of unknown todo %d", tid)
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except StoreError as exc:
            logger.exception("error deleting todo %d", tid)
            raise HTTPException(status_code=500, detail='Internal Error') from exc
        return RedirectResponse(url="/", status_code=302)

    @app.get("/debug/metrics")
    def metrics() -> Dict[str, int]:
        return counters.snapshot()

    @app.get("/debug/stats")
    def request_stats() -> Dict[str, Any]:
        return stats.data()

    return app
