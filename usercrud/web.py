"""Web interface for the user management service."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from .models import USER_FIELDS, Draft, User
from .sessions import SessionManager
from .state import ClientState

logger = logging.getLogger("usercrud.web")

SESSION_COOKIE_NAME = "usercrud_session"

# Set on Post/Redirect/Get landings so the page shows the state the action left.
_AFTER_ACTION_PARAM = "view"
_AFTER_ACTION_VALUE = "current"

_STYLESHEET = """
* { box-sizing: border-box; }
body { margin: 0; font-family: system-ui, sans-serif; background: #f4f6fb; color: #1f2937; }
.container { max-width: 1100px; margin: 0 auto; padding: 24px; }
.header { text-align: center; margin-bottom: 24px; }
.header h1 { margin-bottom: 4px; }
.card { background: #fff; border-radius: 10px; padding: 24px; margin-bottom: 24px; box-shadow: 0 2px 8px rgba(0, 0, 0, 0.08); }
.form-group { margin-bottom: 14px; }
.form-group label { display: block; font-weight: 600; margin-bottom: 4px; }
.form-group input { width: 100%; padding: 8px 10px; border: 1px solid #cbd5e1; border-radius: 6px; }
.btn { border: none; border-radius: 6px; padding: 8px 16px; margin-right: 8px; cursor: pointer; color: #fff; }
.btn-primary { background: #2563eb; }
.btn-success { background: #16a34a; }
.btn-secondary { background: #64748b; }
.btn-warning { background: #d97706; }
.btn-danger { background: #dc2626; }
.inline-form { display: inline; }
.alert { padding: 12px 16px; border-radius: 6px; margin-bottom: 16px; }
.alert-success { background: #dcfce7; color: #166534; }
.alert-error { background: #fee2e2; color: #991b1b; }
.alert--transient { animation: alert-expire 0s linear var(--expire-after, 3s) forwards; }
@keyframes alert-expire { to { visibility: hidden; height: 0; padding: 0; margin: 0; } }
.users-grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(260px, 1fr)); gap: 16px; }
.user-card { border: 1px solid #e2e8f0; border-radius: 8px; padding: 16px; }
.user-info p { margin: 4px 0; }
.loading, .empty-state { text-align: center; color: #64748b; padding: 24px; }
"""


@dataclass(frozen=True)
class _InputSpec:
    label: str
    input_type: str
    placeholder: str
    required: bool = False
    bounds: Optional[Tuple[int, int]] = None


_FIELD_INPUTS = {
    "name": _InputSpec("Name *", "text", "Enter full name", required=True),
    "email": _InputSpec("Email *", "email", "Enter email address", required=True),
    "phone": _InputSpec("Phone", "tel", "Enter phone number"),
    "age": _InputSpec("Age", "number", "Enter age", bounds=(0, 120)),
    "address": _InputSpec("Address", "text", "Enter address"),
}


@dataclass(frozen=True)
class PageLinks:
    """Form targets used when rendering the page."""

    submit: str
    cancel: str
    reload: str
    edit: Callable[[str], str]
    delete: Callable[[str], str]


def _template_environment() -> Jinja2Templates:
    base_dir = Path(__file__).resolve().parent
    return Jinja2Templates(directory=str(base_dir / "templates"))


def _format_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def _form_fields(draft: Draft) -> List[Dict[str, Any]]:
    values = draft.to_payload()
    return [
        {
            "name": field,
            "label": _FIELD_INPUTS[field].label,
            "type": _FIELD_INPUTS[field].input_type,
            "placeholder": _FIELD_INPUTS[field].placeholder,
            "required": _FIELD_INPUTS[field].required,
            "bounds": _FIELD_INPUTS[field].bounds,
            "value": values[field],
        }
        for field in USER_FIELDS
    ]


def _page_context(
    state: ClientState,
    links: PageLinks,
    *,
    message_timeout: Optional[float],
) -> Dict[str, Any]:
    return {
        "state": state,
        "links": links,
        "fields": _form_fields(state.draft),
        "expire_after": None if message_timeout is None else f"{message_timeout:g}s",
        "format_date": _format_date,
        "stylesheet": _STYLESHEET,
    }


# ----------------------------------------------------------------------
# Minimal renderer used when jinja2 is unavailable
# ----------------------------------------------------------------------
def render_alerts(state: ClientState, *, message_timeout: Optional[float]) -> str:
    parts = []
    for message in state.messages():
        classes = f"alert alert-{message.kind}"
        style = ""
        if message.transient and message_timeout is not None:
            classes += " alert--transient"
            style = f' style="--expire-after: {message_timeout:g}s"'
        parts.append(
            f'<div class="{classes}" role="status"{style}>{html.escape(message.text)}</div>'
        )
    return "\n".join(parts)


def _input_markup(field: Dict[str, Any]) -> str:
    attributes = [f'type="{field["type"]}"']
    if field["required"]:
        attributes.append("required")
    if field["bounds"] is not None:
        low, high = field["bounds"]
        attributes.append(f'min="{low}" max="{high}"')
    attributes.append(f'placeholder="{html.escape(field["placeholder"])}"')
    return (
        f'<input id="{field["name"]}" name="{field["name"]}" {" ".join(attributes)}'
        f' value="{html.escape(field["value"])}" />'
    )


def render_form(state: ClientState, links: PageLinks) -> str:
    editing = state.editing_id is not None

    groups = []
    for field in _form_fields(state.draft):
        groups.append(
            '  <div class="form-group">\n'
            f'    <label for="{field["name"]}">{field["label"]}</label>\n'
            f"    {_input_markup(field)}\n"
            "  </div>"
        )

    if editing:
        hidden = (
            f'    <input type="hidden" name="editing_id" value="{html.escape(state.editing_id)}" />\n'
        )
        buttons = (
            '<button type="submit" class="btn btn-success">Update User</button>'
            f'<button type="submit" class="btn btn-secondary" formaction="{links.cancel}" formnovalidate>Cancel</button>'
        )
    else:
        hidden = ""
        buttons = '<button type="submit" class="btn btn-primary">Add User</button>'

    title = "Edit User" if editing else "Add New User"
    fields_markup = "\n".join(groups)
    return (
        '<section class="card">\n'
        f"  <h2>{title}</h2>\n"
        f'  <form method="post" action="{links.submit}">\n'
        f"{hidden}"
        f"{fields_markup}\n"
        f"    <div>{buttons}</div>\n"
        "  </form>\n"
        "</section>"
    )


def render_user_card(user: User, links: PageLinks) -> str:
    details = [f"<p><strong>Email:</strong> {html.escape(user.email)}</p>"]
    if user.phone:
        details.append(f"<p><strong>Phone:</strong> {html.escape(user.phone)}</p>")
    if user.age is not None:
        details.append(f"<p><strong>Age:</strong> {user.age}</p>")
    if user.address:
        details.append(f"<p><strong>Address:</strong> {html.escape(user.address)}</p>")
    details.append(f"<p><strong>Created:</strong> {_format_date(user.created_at)}</p>")

    confirm = "return confirm('Are you sure you want to delete this user?');"
    return (
        f'<div class="user-card" data-user-id="{html.escape(user.id)}">\n'
        f"  <h3>{html.escape(user.name)}</h3>\n"
        f'  <div class="user-info">{"".join(details)}</div>\n'
        "  <div>\n"
        f'    <form class="inline-form" method="post" action="{links.edit(user.id)}">'
        '<button type="submit" class="btn btn-warning">Edit</button></form>\n'
        f'    <form class="inline-form" method="post" action="{links.delete(user.id)}" onsubmit="{confirm}">'
        '<input type="hidden" name="confirm" value="yes" />'
        '<button type="submit" class="btn btn-danger">Delete</button></form>\n'
        "  </div>\n"
        "</div>"
    )


def render_user_list(state: ClientState, links: PageLinks) -> str:
    if state.loading:
        body = '<div class="loading">Loading users...</div>'
    elif not state.records:
        body = (
            '<div class="empty-state">'
            "<h3>No users found</h3>"
            "<p>Add your first user using the form above!</p>"
            "</div>"
        )
    else:
        cards = "\n".join(render_user_card(user, links) for user in state.records)
        body = f'<div class="users-grid">\n{cards}\n</div>'

    return (
        '<section class="card">\n'
        "  <h2>Users List</h2>\n"
        f'  <form method="post" action="{links.reload}" class="inline-form">'
        '<button type="submit" class="btn btn-secondary">Refresh</button></form>\n'
        f"{body}\n"
        "</section>"
    )


def render_page(
    state: ClientState,
    links: PageLinks,
    *,
    message_timeout: Optional[float] = 3.0,
) -> str:
    """Render the full single page from the current client state without templates."""

    content = "\n".join(
        [
            '<div class="header">'
            "<h1>User Management System</h1>"
            "<p>Create, Read, Update, and Delete users with ease</p>"
            "</div>",
            render_alerts(state, message_timeout=message_timeout),
            render_form(state, links),
            render_user_list(state, links),
        ]
    )
    return (
        "<!DOCTYPE html>\n"
        "<html lang=\"en\">\n"
        "  <head>\n"
        "    <meta charset=\"utf-8\" />\n"
        "    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />\n"
        "    <title>User Management System</title>\n"
        f"    <style>{_STYLESHEET}</style>\n"
        "  </head>\n"
        "  <body>\n"
        "    <main class=\"container\">\n"
        f"{content}\n"
        "    </main>\n"
        "  </body>\n"
        "</html>"
    )


async def _parse_form(request: Request) -> Dict[str, str]:
    body_bytes = await request.body()
    content_type = request.headers.get("content-type", "")
    charset = "utf-8"
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
    try:
        decoded = body_bytes.decode(charset)
    except (LookupError, UnicodeDecodeError):
        decoded = body_bytes.decode("utf-8", errors="ignore")
    data = parse_qs(decoded, keep_blank_values=True)
    return {key: values[0] for key, values in data.items() if values}


def register_ui_routes(
    app: FastAPI,
    *,
    session_manager: SessionManager,
    secure_cookies: bool,
    message_timeout: Optional[float],
) -> None:
    """Expose the HTML user management page on the provided FastAPI app."""

    try:
        templates: Optional[Jinja2Templates] = _template_environment()
    except AssertionError:
        logger.warning(
            "jinja2 is not installed; falling back to a minimal HTML renderer for the"
            " user management page."
        )
        templates = None

    router = APIRouter(include_in_schema=False)

    def _links(request: Request) -> PageLinks:
        return PageLinks(
            submit=str(request.url_for("ui_submit")),
            cancel=str(request.url_for("ui_cancel")),
            reload=str(request.url_for("ui_reload")),
            edit=lambda user_id: str(request.url_for("ui_edit", user_id=user_id)),
            delete=lambda user_id: str(request.url_for("ui_delete", user_id=user_id)),
        )

    def _render_page_response(request: Request, state: ClientState) -> HTMLResponse:
        links = _links(request)
        if templates is not None:
            context = _page_context(state, links, message_timeout=message_timeout)
            return templates.TemplateResponse(request, "index.html", context)
        return HTMLResponse(render_page(state, links, message_timeout=message_timeout))

    def _issue_session_cookie(response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            token,
            max_age=session_manager.cookie_max_age,
            secure=secure_cookies,
            httponly=True,
            samesite="lax",
            path="/",
        )

    def _session(request: Request):
        token, manager, created = session_manager.resolve_or_create(
            request.cookies.get(SESSION_COOKIE_NAME)
        )
        if created:
            logger.debug("Started new UI session")
        return token, manager, created

    def _redirect_home(request: Request, token: str, created: bool) -> RedirectResponse:
        target = request.url_for("ui_home").include_query_params(
            **{_AFTER_ACTION_PARAM: _AFTER_ACTION_VALUE}
        )
        response = RedirectResponse(str(target), status_code=status.HTTP_303_SEE_OTHER)
        if created:
            _issue_session_cookie(response, token)
        return response

    @router.get("/", response_class=HTMLResponse, name="ui_home")
    async def homepage(request: Request):
        token, manager, created = _session(request)
        if not manager.mounted:
            await manager.mount()
        elif request.query_params.get(_AFTER_ACTION_PARAM) != _AFTER_ACTION_VALUE:
            await manager.reload()
        response = _render_page_response(request, manager.state)
        if created:
            _issue_session_cookie(response, token)
        return response

    @router.post("/users", name="ui_submit")
    async def submit(request: Request):
        token, manager, created = _session(request)
        form = await _parse_form(request)

        # The form says whether it is an add or an edit; a stale tab must not
        # replace whichever record this session edited last.
        form_editing_id = form.get("editing_id") or None
        if form_editing_id != manager.state.editing_id:
            if form_editing_id is None:
                manager.cancel()
            elif not manager.edit(form_editing_id):
                await manager.reload()
                if not manager.edit(form_editing_id):
                    logger.info("Ignoring update for unknown user %s", form_editing_id)
                    return _redirect_home(request, token, created)

        manager.set_draft(Draft(**{field: form.get(field, "") for field in USER_FIELDS}))
        await manager.submit()
        return _redirect_home(request, token, created)

    @router.post("/users/{user_id}/edit", name="ui_edit")
    async def edit(user_id: str, request: Request):
        token, manager, created = _session(request)
        if not manager.mounted:
            await manager.mount()
        if not manager.edit(user_id):
            logger.info("Ignoring edit request for unknown user %s", user_id)
        return _redirect_home(request, token, created)

    @router.post("/users/{user_id}/delete", name="ui_delete")
    async def delete(user_id: str, request: Request):
        token, manager, created = _session(request)
        form = await _parse_form(request)
        await manager.delete(user_id, confirmed=form.get("confirm") == "yes")
        return _redirect_home(request, token, created)

    @router.post("/cancel", name="ui_cancel")
    async def cancel(request: Request):
        token, manager, created = _session(request)
        manager.cancel()
        return _redirect_home(request, token, created)

    @router.post("/reload", name="ui_reload")
    async def reload(request: Request):
        token, manager, created = _session(request)
        await manager.reload()
        return _redirect_home(request, token, created)

    app.include_router(router)


__all__ = [
    "PageLinks",
    "SESSION_COOKIE_NAME",
    "register_ui_routes",
    "render_page",
]
