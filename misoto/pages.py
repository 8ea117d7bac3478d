from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from misoto.models import Recipe


def template_environment(templates_dir: Path) -> Environment:
    return Environment(
        loader=FileSystemLoader(templates_dir),
        autoescape=select_autoescape(),
    )


class RecipePage:
    """The public share page of a recipe."""

    def __init__(
        self,
        recipe: Recipe,
        *,
        environment: Environment,
        template_name: str = "recipe-detail.html",
    ) -> None:
        self.recipe = recipe
        self.env = environment
        self.name = template_name

    @property
    def title(self) -> str:
        return self.recipe.title

    @property
    def description(self) -> str:
        return self.recipe.description

    @property
    def image_urls(self) -> list[str]:
        return self.recipe.image_urls

    @property
    def content(self) -> Markup:
        # Recipe.html escapes any markup typed into the recipe itself.
        return Markup(self.recipe.html)

    def render(self) -> str:
        return self.env.get_template(self.name).render(recipe=self)
