"""Localized dynamic data generator.

Wraps a ``Faker`` instance behind a small, namespaced surface that templates
and scripts can call::

    {{faker.person.fullName()}}
    {{faker.internet.email({ firstName: 'Jeanne' })}}
    awsm.faker.date.future(years=10)

Category and method names are identical for every locale; only the produced
values differ. Method and option names are accepted in camelCase (as written
in templates) or snake_case.
"""

import json
import re
import string
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

from faker import Faker

from awsm_http.utils import logger


DEFAULT_LOCALE = "en"

# Locale tags offered in the settings, mapped to Faker locales
AVAILABLE_LOCALES: Dict[str, str] = {
    "en": "en_US",
    "de": "de_DE",
    "fr": "fr_FR",
    "es": "es_ES",
    "it": "it_IT",
    "pt_BR": "pt_BR",
    "ja": "ja_JP",
    "ko": "ko_KR",
    "zh_CN": "zh_CN",
    "ru": "ru_RU",
    "nl": "nl_NL",
    "pl": "pl_PL",
    "tr": "tr_TR",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


def _opt(opts: Dict[str, Any], name: str, default: Any) -> Any:
    value = opts.get(name)
    return default if value is None else value


def _email(fake: Faker, opts: Dict[str, Any]) -> str:
    first = opts.get("first_name")
    last = opts.get("last_name")
    provider = opts.get("provider")
    if not (first or last or provider):
        return fake.email()
    user = ".".join(p for p in (first, last) if p) or fake.user_name()
    user = re.sub(r"[^A-Za-z0-9._-]", "", str(user)).lower() or fake.user_name()
    return f"{user}@{provider or fake.free_email_domain()}"


def _full_name(fake: Faker, opts: Dict[str, Any]) -> str:
    first = _opt(opts, "first_name", None) or fake.first_name()
    last = _opt(opts, "last_name", None) or fake.last_name()
    return f"{first} {last}"


def _alpha(fake: Faker, opts: Dict[str, Any], letters: str) -> str:
    length = int(_opt(opts, "length", 10))
    return fake.lexify("?" * length, letters=letters)


def _number_float(fake: Faker, opts: Dict[str, Any]) -> float:
    low = float(_opt(opts, "min", 0))
    high = float(_opt(opts, "max", 1))
    digits = int(_opt(opts, "fraction_digits", 2))
    return round(fake.random.uniform(low, high), digits)


@dataclass(frozen=True)
class _Method:
    fn: Callable[[Faker, Dict[str, Any]], Any]
    # Option name a single positional (non-object) argument binds to
    primary: Optional[str] = None


_CATEGORIES: Dict[str, Dict[str, _Method]] = {
    "person": {
        "first_name": _Method(lambda f, o: f.first_name()),
        "last_name": _Method(lambda f, o: f.last_name()),
        "middle_name": _Method(lambda f, o: f.first_name()),
        "full_name": _Method(_full_name),
        "prefix": _Method(lambda f, o: f.prefix()),
        "suffix": _Method(lambda f, o: f.suffix()),
        "job_title": _Method(lambda f, o: f.job()),
        "sex": _Method(lambda f, o: f.random_element(("female", "male"))),
    },
    "internet": {
        "email": _Method(_email),
        "user_name": _Method(lambda f, o: f.user_name()),
        "username": _Method(lambda f, o: f.user_name()),
        "password": _Method(lambda f, o: f.password(length=int(_opt(o, "length", 15))), primary="length"),
        "url": _Method(lambda f, o: f.url()),
        "domain_name": _Method(lambda f, o: f.domain_name()),
        "ip": _Method(lambda f, o: f.ipv4()),
        "ipv4": _Method(lambda f, o: f.ipv4()),
        "ipv6": _Method(lambda f, o: f.ipv6()),
        "mac": _Method(lambda f, o: f.mac_address()),
        "user_agent": _Method(lambda f, o: f.user_agent()),
    },
    "date": {
        "past": _Method(
            lambda f, o: _iso(f.date_time_between(start_date=f"-{int(_opt(o, 'years', 1))}y", end_date="now")),
            primary="years",
        ),
        "future": _Method(
            lambda f, o: _iso(f.date_time_between(start_date="now", end_date=f"+{int(_opt(o, 'years', 1))}y")),
            primary="years",
        ),
        "recent": _Method(
            lambda f, o: _iso(f.date_time_between(start_date=f"-{int(_opt(o, 'days', 1))}d", end_date="now")),
            primary="days",
        ),
        "soon": _Method(
            lambda f, o: _iso(f.date_time_between(start_date="now", end_date=f"+{int(_opt(o, 'days', 1))}d")),
            primary="days",
        ),
        "anytime": _Method(lambda f, o: _iso(f.date_time())),
        "birthdate": _Method(lambda f, o: f.date_of_birth(
            minimum_age=int(_opt(o, "min", 18)), maximum_age=int(_opt(o, "max", 80))
        ).isoformat()),
        "month": _Method(lambda f, o: f.month_name()),
        "weekday": _Method(lambda f, o: f.day_of_week()),
    },
    "string": {
        "uuid": _Method(lambda f, o: f.uuid4()),
        "alpha": _Method(lambda f, o: _alpha(f, o, string.ascii_letters), primary="length"),
        "alphanumeric": _Method(lambda f, o: _alpha(f, o, string.ascii_letters + string.digits), primary="length"),
        "numeric": _Method(lambda f, o: _alpha(f, o, string.digits), primary="length"),
        "hexadecimal": _Method(lambda f, o: _alpha(f, o, "0123456789abcdef"), primary="length"),
        "nanoid": _Method(
            lambda f, o: f.lexify("?" * int(_opt(o, "length", 21)), letters=string.ascii_letters + string.digits + "_-"),
            primary="length",
        ),
    },
    "number": {
        "int": _Method(lambda f, o: f.random_int(min=int(_opt(o, "min", 0)), max=int(_opt(o, "max", 9999))), primary="max"),
        "float": _Method(_number_float, primary="max"),
    },
    "datatype": {
        "boolean": _Method(lambda f, o: f.pybool()),
    },
    "company": {
        "name": _Method(lambda f, o: f.company()),
        "catch_phrase": _Method(lambda f, o: f.catch_phrase()),
        "buzz_phrase": _Method(lambda f, o: f.bs()),
    },
    "location": {
        "city": _Method(lambda f, o: f.city()),
        "country": _Method(lambda f, o: f.country()),
        "street_address": _Method(lambda f, o: f.street_address()),
        "zip_code": _Method(lambda f, o: f.postcode()),
        "latitude": _Method(lambda f, o: float(f.latitude())),
        "longitude": _Method(lambda f, o: float(f.longitude())),
    },
    "phone": {
        "number": _Method(lambda f, o: f.phone_number()),
    },
    "lorem": {
        "word": _Method(lambda f, o: f.word()),
        "words": _Method(lambda f, o: " ".join(f.words(nb=int(_opt(o, "count", 3)))), primary="count"),
        "sentence": _Method(lambda f, o: f.sentence()),
        "paragraph": _Method(lambda f, o: f.paragraph()),
        "slug": _Method(lambda f, o: f.slug()),
    },
    "finance": {
        "amount": _Method(lambda f, o: round(f.random.uniform(float(_opt(o, "min", 0)), float(_opt(o, "max", 1000))), 2)),
        "currency_code": _Method(lambda f, o: f.currency_code()),
        "iban": _Method(lambda f, o: f.iban()),
        "credit_card_number": _Method(lambda f, o: f.credit_card_number()),
    },
    "color": {
        "human": _Method(lambda f, o: f.color_name()),
        "rgb": _Method(lambda f, o: f.hex_color()),
    },
}


class Category:
    """A namespace of generator functions, e.g. ``faker.person``."""

    def __init__(self, name: str, fake: Faker):
        self._name = name
        self._fake = fake
        self._methods = _CATEGORIES[name]

    def __getattr__(self, attr: str) -> Callable[..., Any]:
        if attr.startswith("_"):
            raise AttributeError(attr)
        return self.method(attr)

    def method(self, attr: str) -> Callable[..., Any]:
        """Bound generator function for ``attr`` (camelCase or snake_case)."""
        method = None if attr.startswith("_") else self._methods.get(snake_case(attr))
        if method is None:
            raise AttributeError(f"faker.{self._name} has no method '{attr}'")
        fake = self._fake

        def call(*args: Any, **kwargs: Any) -> Any:
            return method.fn(fake, _options(method, args, kwargs))

        call.__name__ = attr
        return call

    def __dir__(self) -> List[str]:
        return sorted(self._methods)

    def __repr__(self) -> str:
        return f"<faker.{self._name}>"


def _options(method: _Method, args: tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    if len(args) > 1:
        raise TypeError("faker methods take at most one positional argument")
    opts: Dict[str, Any] = {}
    if args:
        arg = args[0]
        if isinstance(arg, dict):
            opts.update(arg)
        elif arg is not None:
            if method.primary is None:
                raise TypeError("this faker method only accepts an options object")
            opts[method.primary] = arg
    opts.update(kwargs)
    return {snake_case(str(k)): v for k, v in opts.items()}


class DataGenerator:
    """Provider of categorized random values for one locale.

    Args:
        locale: Locale tag (see ``AVAILABLE_LOCALES``); unknown tags fall back
            to ``en``.
        seed: Optional seed for reproducible output.
    """

    def __init__(self, locale: str = DEFAULT_LOCALE, seed: Optional[int] = None):
        self.locale = locale if locale in AVAILABLE_LOCALES else DEFAULT_LOCALE
        if self.locale != locale:
            logger.warning(f"Unknown faker locale '{locale}', using '{DEFAULT_LOCALE}'")
        self.seed = seed
        self._fake = Faker(AVAILABLE_LOCALES[self.locale])
        if seed is not None:
            self._fake.seed_instance(seed)
        self._categories = {name: Category(name, self._fake) for name in _CATEGORIES}

    def __getattr__(self, attr: str) -> Category:
        if attr.startswith("_"):
            raise AttributeError(attr)
        return self.category(attr)

    def category(self, name: str) -> Category:
        """Look up a category by name; private names never resolve."""
        category = None if name.startswith("_") else self._categories.get(snake_case(name))
        if category is None:
            raise AttributeError(f"faker has no category '{name}'")
        return category

    def call(self, category: str, method: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke ``category.method`` by name."""
        return self.category(category).method(method)(*args, **kwargs)

    @staticmethod
    def describe() -> Dict[str, List[str]]:
        """Category and method names, identical for every locale."""
        return {name: sorted(methods) for name, methods in _CATEGORIES.items()}

    def __repr__(self) -> str:
        return f"DataGenerator(locale={self.locale!r}, seed={self.seed!r})"


@lru_cache(maxsize=None)
def _shared_generator(locale: str) -> DataGenerator:
    return DataGenerator(locale)


def get_generator(locale: str = DEFAULT_LOCALE, seed: Optional[int] = None) -> DataGenerator:
    """Return a generator for ``locale``.

    Unseeded generators are shared per locale; seeded ones are always fresh so
    that each run replays the same sequence.
    """
    if seed is not None:
        return DataGenerator(locale, seed=seed)
    return _shared_generator(locale)


def to_text(value: Any) -> str:
    """Render a generated or script value as template text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple)):
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)
