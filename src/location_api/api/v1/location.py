"""Location API endpoints — search, reverse, popular, suggestions and nearby search.

Every response is wrapped in the ``ApiResponse`` envelope. Typed location
errors are converted to envelopes by the handlers registered in ``main``.
"""

from fastapi import APIRouter, Depends, Query

from location_api.core.dependencies import get_client_context, get_current_user_id, get_location_service
from location_api.schemas.common import ApiResponse
from location_api.schemas.location import (
    LocationOptionResponse,
    NearbyBundleResponse,
    NearbyToolResponse,
    NearbyUserResponse,
)
from location_api.services.location_service import ClientContext, LocationService

location_router = APIRouter(prefix="/location", tags=["location"])


@location_router.get("/search", response_model=ApiResponse[list[LocationOptionResponse]])
async def search_locations(
    query: str = Query(..., description="Place name or address (1-200 characters)"),  # noqa: B008
    max_results: int = Query(5, alias="maxResults", description="Maximum results (1-20)"),  # noqa: B008
    country_code: str | None = Query(None, alias="countryCode", description="ISO 3166-1 alpha-2 filter"),  # noqa: B008
    user_id: str = Depends(get_current_user_id),  # noqa: B008
    client: ClientContext = Depends(get_client_context),  # noqa: B008
    service: LocationService = Depends(get_location_service),  # noqa: B008
) -> ApiResponse[list[LocationOptionResponse]]:
    """Forward-geocode a free-text query."""
    options = await service.search_locations(query, max_results, country_code, user_id=user_id, client=client)
    return ApiResponse.ok(
        [LocationOptionResponse.from_option(o) for o in options],
        f"Found {len(options)} location(s)",
    )


@location_router.get("/reverse", response_model=ApiResponse[LocationOptionResponse])
async def reverse_geocode(
    lat: float = Query(..., description="Latitude (-90 to 90)"),  # noqa: B008
    lng: float = Query(..., description="Longitude (-180 to 180)"),  # noqa: B008
    user_id: str = Depends(get_current_user_id),  # noqa: B008
    client: ClientContext = Depends(get_client_context),  # noqa: B008
    service: LocationService = Depends(get_location_service),  # noqa: B008
) -> ApiResponse[LocationOptionResponse]:
    """Reverse-geocode a coordinate. ``data`` is null when nothing matched."""
    option = await service.reverse_geocode(lat, lng, user_id=user_id, client=client)
    if option is None:
        return ApiResponse.ok(None, "No location found for these coordinates")
    return ApiResponse.ok(LocationOptionResponse.from_option(option), "Location found")


@location_router.get("/popular", response_model=ApiResponse[list[LocationOptionResponse]])
async def popular_locations(
    max_results: int = Query(10, alias="maxResults", description="Maximum results (1-50)"),  # noqa: B008
    service: LocationService = Depends(get_location_service),  # noqa: B008
) -> ApiResponse[list[LocationOptionResponse]]:
    """Most frequent listing locations. Does not require authentication."""
    options = await service.get_popular_locations(max_results)
    return ApiResponse.ok(
        [LocationOptionResponse.from_option(o) for o in options],
        f"Found {len(options)} popular location(s)",
    )


@location_router.get("/suggestions", response_model=ApiResponse[list[LocationOptionResponse]])
async def location_suggestions(
    query: str = Query(..., description="Partial place name (at least 2 characters)"),  # noqa: B008
    max_results: int = Query(8, alias="maxResults", description="Maximum results (1-20)"),  # noqa: B008
    _user_id: str = Depends(get_current_user_id),  # noqa: B008
    service: LocationService = Depends(get_location_service),  # noqa: B008
) -> ApiResponse[list[LocationOptionResponse]]:
    """Autocomplete suggestions from stored listing labels and the geocoder."""
    options = await service.get_location_suggestions(query, max_results)
    return ApiResponse.ok(
        [LocationOptionResponse.from_option(o) for o in options],
        f"Found {len(options)} suggestion(s)",
    )


@location_router.get("/nearby/tools", response_model=ApiResponse[list[NearbyToolResponse]])
async def nearby_tools(
    lat: float = Query(..., description="Search center latitude"),  # noqa: B008
    lng: float = Query(..., description="Search center longitude"),  # noqa: B008
    radius_km: float = Query(..., alias="radiusKm", description="Search radius in kilometers (1-100)"),  # noqa: B008
    max_results: int = Query(20, alias="maxResults", description="Maximum results (1-100)"),  # noqa: B008
    user_id: str = Depends(get_current_user_id),  # noqa: B008
    client: ClientContext = Depends(get_client_context),  # noqa: B008
    service: LocationService = Depends(get_location_service),  # noqa: B008
) -> ApiResponse[list[NearbyToolResponse]]:
    """Tools near a point with distance bands and approximate locations."""
    tools = await service.find_nearby_tools(
        lat, lng, radius_km, user_id=user_id, max_results=max_results, client=client
    )
    return ApiResponse.ok(tools, f"Found {len(tools)} tool(s) within {radius_km:g} km")


@location_router.get("/nearby/bundles", response_model=ApiResponse[list[NearbyBundleResponse]])
async def nearby_bundles(
    lat: float = Query(..., description="Search center latitude"),  # noqa: B008
    lng: float = Query(..., description="Search center longitude"),  # noqa: B008
    radius_km: float = Query(..., alias="radiusKm", description="Search radius in kilometers (1-100)"),  # noqa: B008
    max_results: int = Query(20, alias="maxResults", description="Maximum results (1-100)"),  # noqa: B008
    user_id: str = Depends(get_current_user_id),  # noqa: B008
    client: ClientContext = Depends(get_client_context),  # noqa: B008
    service: LocationService = Depends(get_location_service),  # noqa: B008
) -> ApiResponse[list[NearbyBundleResponse]]:
    """Bundles near a point with distance bands and approximate locations."""
    bundles = await service.find_nearby_bundles(
        lat, lng, radius_km, user_id=user_id, max_results=max_results, client=client
    )
    return ApiResponse.ok(bundles, f"Found {len(bundles)} bundle(s) within {radius_km:g} km")


@location_router.get("/nearby/users", response_model=ApiResponse[list[NearbyUserResponse]])
async def nearby_users(
    lat: float = Query(..., description="Search center latitude"),  # noqa: B008
    lng: float = Query(..., description="Search center longitude"),  # noqa: B008
    radius_km: float = Query(..., alias="radiusKm", description="Search radius in kilometers (1-100)"),  # noqa: B008
    max_results: int = Query(20, alias="maxResults", description="Maximum results (1-100)"),  # noqa: B008
    user_id: str = Depends(get_current_user_id),  # noqa: B008
    client: ClientContext = Depends(get_client_context),  # noqa: B008
    service: LocationService = Depends(get_location_service),  # noqa: B008
) -> ApiResponse[list[NearbyUserResponse]]:
    """Members near a point with distance bands and approximate locations."""
    users = await service.find_nearby_users(
        lat, lng, radius_km, user_id=user_id, max_results=max_results, client=client
    )
    return ApiResponse.ok(users, f"Found {len(users)} member(s) within {radius_km:g} km")
