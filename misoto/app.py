import contextlib
import functools
import logging
import re
from typing import Any, Awaitable, Callable

from databases import Database
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.datastructures import UploadFile
from starlette.requests import Request
from starlette.responses import FileResponse, HTMLResponse, JSONResponse, Response
from starlette.routing import Route

from misoto import aopenai, auth, extraction, feedback, friends, services, storage
from misoto.config import Config, Env, configure_logging
from misoto.cuisines import search_cuisines
from misoto.db import RecipeNotFound, create_tables
from misoto.forms import FormError, RecipeForm
from misoto.llm_service import LLMService
from misoto.models import AppUser, Recipe
from misoto.pages import RecipePage, template_environment


logger = logging.getLogger(__name__)


USER_HEADER = "X-User-ID"

_INSTRUCTION_MEDIA = re.compile(r"instruction_(image|video)_(\d+)")


class BadRequest(Exception):
    pass


# Looked up along the exception's MRO, so a subclass entry overrides its family.
ERROR_STATUS: dict[type[Exception], int] = {
    BadRequest: 400,
    ValidationError: 400,
    FormError: 400,
    aopenai.ApiKeyNotConfigured: 503,
    aopenai.InvalidURL: 400,
    aopenai.ImageConversionFailed: 400,
    aopenai.NoRecipeDetected: 422,
    aopenai.OpenAIError: 502,
    services.Unauthorized: 403,
    RecipeNotFound: 404,
    friends.Unauthorized: 401,
    friends.CannotFollowSelf: 400,
    feedback.NotAuthenticated: 401,
    feedback.EmptySubtitle: 400,
    feedback.InvalidEmail: 400,
    feedback.SubmissionFailed: 500,
    storage.InvalidImage: 400,
    storage.InvalidPath: 400,
    storage.UploadFailed: 500,
    extraction.NoImages: 400,
    extraction.ExtractionError: 422,
    auth.NotAuthenticated: 401,
    auth.InvalidUsername: 400,
    auth.UsernameTaken: 409,
}


def status_for(exc: Exception) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


async def domain_error(request: Request, exc: Exception) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    body: dict[str, Any] = {"error": str(exc)}
    if isinstance(exc, auth.UsernameTaken):
        body["alternatives"] = exc.alternatives
    return JSONResponse(body, status_code=status)


def aHTMLResponse(route: Callable[..., Awaitable[str | tuple[str, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> HTMLResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            html, code = resp, 200
        else:
            html, code = resp
        return HTMLResponse(html, status_code=code)

    return wrapper


def current_user(request: Request) -> str | None:
    return request.headers.get(USER_HEADER) or None


def require_user(request: Request) -> str:
    user_id = current_user(request)
    if user_id is None:
        raise auth.NotAuthenticated()
    return user_id


async def json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        raise BadRequest("Request body must be JSON") from e
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body  # pyright: ignore[reportUnknownVariableType]


def _text(body: dict[str, Any], key: str) -> str:
    value = body.get(key, "")
    if not isinstance(value, str):
        raise BadRequest(f"{key} must be a string")
    return value


async def _uploads(files: list[Any]) -> list[bytes]:
    data: list[bytes] = []
    for upload in files:
        if isinstance(upload, UploadFile) and upload.size:
            data.append(await upload.read())
    return data


async def read_recipe_form(request: Request) -> RecipeForm:
    """A recipe form posted as multipart: JSON in ``recipe`` plus media files."""
    async with request.form() as form:
        raw = form.get("recipe")
        if not isinstance(raw, str):
            raise BadRequest("Missing recipe field")
        recipe_form = RecipeForm.model_validate_json(raw)

        for image in await _uploads(form.getlist("images")):
            recipe_form.add_image(image)
        recipe_form.source_images.extend(await _uploads(form.getlist("source_images")))

        for key, value in form.multi_items():
            m = _INSTRUCTION_MEDIA.fullmatch(key)
            if m is None or not isinstance(value, UploadFile):
                continue
            media = await value.read()
            match m.group(1):
                case "image":
                    recipe_form.set_instruction_image(int(m.group(2)), media)
                case _:
                    recipe_form.set_instruction_video(int(m.group(2)), media)
    return recipe_form


def _recipes(items: list[Recipe]) -> JSONResponse:
    return JSONResponse([r.to_document() for r in items])


def _users(items: list[AppUser]) -> JSONResponse:
    return JSONResponse([u.to_document() for u in items])


# Recipes


async def recipes(request: Request) -> JSONResponse:
    service: services.RecipeService = request.app.state.recipes
    match request.method.lower():
        case "get":
            return _recipes(await service.fetch_all_recipes())
        case "post":
            user_id = require_user(request)
            user: AppUser | None = await request.app.state.auth.load_user(user_id)
            form = await read_recipe_form(request)
            recipe = await form.build_recipe(
                request.app.state.storage,
                author_id=user_id,
                author_name=user.display_name if user is not None else "User",
                author_username=user.username if user is not None else None,
            )
            await service.create_recipe(recipe, user_id)
            return JSONResponse(recipe.to_document(), status_code=201)
        case _:
            raise ValueError("Unsupported method.")


async def recipe_detail(request: Request) -> Response:
    id = request.path_params["id"]
    service: services.RecipeService = request.app.state.recipes
    match request.method.lower():
        case "get":
            recipe = await service.fetch_recipe(id)
            if recipe is None:
                raise RecipeNotFound(f"Recipe {id} not found")
            return JSONResponse(recipe.to_document())
        case "put":
            user_id = require_user(request)
            recipe = await service.fetch_recipe(id)
            if recipe is None:
                raise RecipeNotFound(f"Recipe {id} not found")
            if recipe.author_id != user_id:
                raise services.Unauthorized()
            form = await read_recipe_form(request)
            recipe = await form.apply_to_recipe(recipe, request.app.state.storage)
            return JSONResponse((await service.update_recipe(recipe)).to_document())
        case "delete":
            await service.delete_recipe(id, current_user(request))
            return Response(status_code=204)
        case _:
            raise ValueError("Unsupported method.")


async def user_recipes(request: Request) -> JSONResponse:
    service: services.RecipeService = request.app.state.recipes
    return _recipes(await service.fetch_recipes_by_user(request.path_params["id"]))


@aHTMLResponse
async def share_recipe(request: Request) -> str | tuple[str, int]:
    service: services.RecipeService = request.app.state.recipes
    recipe = await service.fetch_recipe(request.path_params["id"])
    if recipe is None:
        return "<h1>Recipe not found</h1>", 404
    return RecipePage(recipe, environment=request.app.state.templates).render()


# Favourites


async def favorite(request: Request) -> Response:
    id = request.path_params["id"]
    service: services.RecipeService = request.app.state.recipes
    match request.method.lower():
        case "get":
            user_id = current_user(request)
            is_favorite = user_id is not None and await service.is_favorite(id, user_id)
            return JSONResponse({"favorite": is_favorite})
        case "post":
            await service.add_favorite(id, current_user(request))
            return Response(status_code=204)
        case "delete":
            await service.remove_favorite(id, current_user(request))
            return Response(status_code=204)
        case _:
            raise ValueError("Unsupported method.")


async def favorite_recipes(request: Request) -> JSONResponse:
    service: services.RecipeService = request.app.state.recipes
    return _recipes(await service.fetch_favorite_recipes(require_user(request)))


# Friends


async def follow(request: Request) -> Response:
    id = request.path_params["id"]
    service: friends.FriendsService = request.app.state.friends
    match request.method.lower():
        case "get":
            return JSONResponse(
                {"following": await service.is_following(id, current_user(request))}
            )
        case "post":
            await service.follow_user(id, current_user(request))
            return Response(status_code=204)
        case "delete":
            await service.unfollow_user(id, current_user(request))
            return Response(status_code=204)
        case _:
            raise ValueError("Unsupported method.")


async def followers(request: Request) -> JSONResponse:
    service: friends.FriendsService = request.app.state.friends
    return _users(await service.fetch_followers(request.path_params["id"]))


async def following(request: Request) -> JSONResponse:
    service: friends.FriendsService = request.app.state.friends
    return _users(await service.fetch_following(request.path_params["id"]))


async def search_users(request: Request) -> JSONResponse:
    service: friends.FriendsService = request.app.state.friends
    return _users(await service.search_users(request.query_params.get("q", "")))


# The signed-in user


async def sign_in(request: Request) -> JSONResponse:
    user_id = require_user(request)
    body = await json_body(request)
    email = body.get("email")
    user = await request.app.state.auth.sign_in(
        user_id,
        email if isinstance(email, str) else None,
        _text(body, "displayName") or "User",
    )
    return JSONResponse(user.to_document())


async def me(request: Request) -> JSONResponse:
    service: auth.AuthService = request.app.state.auth
    match request.method.lower():
        case "get":
            user = await service.load_user(current_user(request))
            if user is None:
                raise auth.NotAuthenticated()
            return JSONResponse(user.to_document())
        case "put":
            body = await json_body(request)
            username = body.get("username")
            bio = body.get("bio")
            user = await service.update_profile(
                current_user(request),
                _text(body, "displayName"),
                username if isinstance(username, str) else None,
                bio if isinstance(bio, str) else None,
            )
            return JSONResponse(user.to_document())
        case _:
            raise ValueError("Unsupported method.")


async def profile_image(request: Request) -> JSONResponse:
    async with request.form() as form:
        images = await _uploads(form.getlist("image"))
    if not images:
        raise BadRequest("Missing image")
    service: auth.AuthService = request.app.state.auth
    url = await service.upload_profile_image(current_user(request), images[0])
    return JSONResponse({"profileImageURL": url})


async def check_username(request: Request) -> JSONResponse:
    username = request.query_params.get("username", "")
    service: auth.AuthService = request.app.state.auth
    available = await service.check_username_availability(username, current_user(request))
    body: dict[str, Any] = {"available": available}
    if not available:
        body["alternatives"] = auth.username_alternatives(username)
    return JSONResponse(body)


# Feedback and reference data


async def submit_feedback(request: Request) -> JSONResponse:
    body = await json_body(request)
    try:
        type = feedback.FeedbackType(body.get("type"))
    except ValueError as e:
        raise BadRequest("Unknown feedback type") from e
    email = body.get("email")
    service: feedback.FeedbackService = request.app.state.feedback
    entry = await service.submit_feedback(
        type,
        _text(body, "name"),
        _text(body, "subtitle"),
        email if isinstance(email, str) else None,
        current_user(request),
    )
    return JSONResponse(entry.model_dump(mode="json", by_alias=True), status_code=201)


async def cuisines(request: Request) -> JSONResponse:
    return JSONResponse(search_cuisines(request.query_params.get("q", "")))


# Extraction


async def extract_link(request: Request) -> JSONResponse:
    body = await json_body(request)
    extractor: extraction.RecipeExtractor = request.app.state.extractor
    return JSONResponse((await extractor.from_link(_text(body, "url"))).to_json())


async def extract_webpage(request: Request) -> JSONResponse:
    body = await json_body(request)
    extractor: extraction.RecipeExtractor = request.app.state.extractor
    form = await extractor.from_webpage(_text(body, "html"), _text(body, "url"))
    return JSONResponse(form.to_json())


async def extract_text(request: Request) -> JSONResponse:
    body = await json_body(request)
    extractor: extraction.RecipeExtractor = request.app.state.extractor
    return JSONResponse((await extractor.from_text(_text(body, "text"))).to_json())


async def extract_images(request: Request) -> JSONResponse:
    async with request.form() as form:
        images = await _uploads(form.getlist("images"))
    extractor: extraction.RecipeExtractor = request.app.state.extractor
    return JSONResponse((await extractor.from_images(images)).to_json())


# Stored objects


async def stored_object(request: Request) -> Response:
    store: storage.LocalStorage = request.app.state.storage
    path = store.resolve(request.path_params["path"])
    if not path.is_file():
        return JSONResponse({"error": "Not found"}, status_code=404)
    return FileResponse(path)


def create_app(
    config: Config | None = None,
    *,
    db: Database | None = None,
    llm: LLMService | None = None,
    store: storage.LocalStorage | None = None,
) -> Starlette:
    config = Config() if config is None else config
    configure_logging(config)

    db = Database(config.db_url) if db is None else db
    llm = (
        LLMService(
            api_key=config.openai_api_key,
            model=config.core_model,
            base_url=config.openai_base_url,
            timeout=config.openai_timeout,
        )
        if llm is None
        else llm
    )
    store = (
        storage.LocalStorage(config.storage_dir, config.storage_base_url)
        if store is None
        else store
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        await db.connect()
        await create_tables(db)
        yield
        await db.disconnect()
        await llm.aclose()

    app = Starlette(
        debug=config.env == Env.local,
        routes=[
            Route("/recipes", recipes, methods=["GET", "POST"]),
            Route("/recipes/{id}", recipe_detail, methods=["GET", "PUT", "DELETE"]),
            Route("/recipes/{id}/share", share_recipe),
            Route("/recipes/{id}/favorite", favorite, methods=["GET", "POST", "DELETE"]),
            Route("/users/search", search_users),
            Route("/users/{id}/recipes", user_recipes),
            Route("/users/{id}/follow", follow, methods=["GET", "POST", "DELETE"]),
            Route("/users/{id}/followers", followers),
            Route("/users/{id}/following", following),
            Route("/me", me, methods=["GET", "PUT"]),
            Route("/me/sign-in", sign_in, methods=["POST"]),
            Route("/me/favorites", favorite_recipes),
            Route("/me/profile-image", profile_image, methods=["POST"]),
            Route("/usernames/check", check_username),
            Route("/feedback", submit_feedback, methods=["POST"]),
            Route("/cuisines", cuisines),
            Route("/extract/link", extract_link, methods=["POST"]),
            Route("/extract/webpage", extract_webpage, methods=["POST"]),
            Route("/extract/text", extract_text, methods=["POST"]),
            Route("/extract/images", extract_images, methods=["POST"]),
            Route("/storage/o/{path:path}", stored_object),
        ],
        exception_handlers={cls: domain_error for cls in ERROR_STATUS},
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.db = db
    app.state.llm = llm
    app.state.storage = store
    app.state.templates = template_environment(config.templates_dir)
    app.state.recipes = services.RecipeService(db)
    app.state.friends = friends.FriendsService(db)
    app.state.feedback = feedback.FeedbackService(db, app_version=config.app_version)
    app.state.auth = auth.AuthService(db, storage=store)
    app.state.extractor = extraction.RecipeExtractor(
        llm,
        use_cost_optimized=config.use_cost_optimized_extraction,
        use_ai_refinement=config.use_ai_refinement,
    )
    return app
