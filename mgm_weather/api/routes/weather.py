from fastapi import APIRouter, Request

from ...schemas.weather import ErrorResponse, WeatherSnapshot

router = APIRouter()


@router.get(
    "/weather",
    response_model=WeatherSnapshot,
    summary="Current, hourly and daily weather for Karaman",
    responses={
        500: {"model": ErrorResponse, "description": "Upstream page could not be rendered or read"},
    },
)
async def get_weather(request: Request) -> WeatherSnapshot:
    service = request.app.state.weather_service
    # WeatherFetchError is rendered by the handler registered in create_app
    return await service.get_weather()
