"""Redirect resolver engine — follow redirects, detect deleted repositories."""

from packagelist.engines.redirect_resolver.models import RedirectReport, ValidationOutcome
from packagelist.engines.redirect_resolver.resolver import RedirectResolver
from packagelist.engines.redirect_resolver.runner import RedirectChecker

__all__ = ["RedirectChecker", "RedirectReport", "RedirectResolver", "ValidationOutcome"]
