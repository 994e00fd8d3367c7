import os
import time

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template

from shared.app_logging.logger import get_logger

logger = get_logger("bot.templates")

TEMPLATE_DIR = os.getenv(
    "BOT_TEMPLATE_DIR", os.path.join(os.path.dirname(__file__), "templates")
)

# Plain-text chat messages: no HTML autoescaping
_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=False,
    undefined=StrictUndefined,
)


def get_template(name: str) -> Template:
    try:
        return _env.get_template(name)
    except Exception as e:
        logger.exception("Error loading template %r: %s", name, e)
        raise


def render(name: str, **ctx) -> str:
    """
    Load and render the given template with context.
    :param name: filename of the template (e.g. 'confirmation.txt.j2')
    :param ctx: keyword args for rendering
    :return: rendered string
    """
    start = time.perf_counter()
    result = get_template(name).render(**ctx)
    logger.debug("Rendered template %r in %.2fms", name, (time.perf_counter() - start) * 1000)
    return result
