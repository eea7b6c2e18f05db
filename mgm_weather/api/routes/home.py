from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

router = APIRouter()

PAGE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>{title}</title></head>
<body>
    <h1>{title} - running</h1>
    <p>Weather data for Karaman, scraped from the MGM website.</p>
    <ul>
        <li><a href="/api/weather">All data (current, hourly, daily)</a></li>
        <li><a href="/health/">Health</a></li>
    </ul>
    <p>Data is refreshed from MGM at most every {minutes} minutes.</p>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
def home(request: Request) -> HTMLResponse:
    settings = request.app.state.settings
    minutes = max(1, round(settings.cache_ttl_seconds / 60))
    return HTMLResponse(PAGE.format(title=settings.app_name, minutes=minutes))
