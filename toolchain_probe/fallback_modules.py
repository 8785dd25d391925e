"""
Built-in module list used when neither the CLI nor the on-disk cache can supply
a catalog. Entries use the same raw shape as ``modules list --json`` output and
are normalized by :mod:`toolchain_probe.catalog`. Never written to disk.
"""

from __future__ import annotations

from typing import Any


# (name, display_name, version, category, slug, description)
_ROWS: tuple[tuple[str, str, str, str, str, str], ...] = (
    ("ai_assistant", "AI Assistant", "0.1.7", "ai", "free/ai/ai_assistant",
     "AI-powered assistant integration for intelligent features"),
    ("api_keys", "API Keys", "0.1.0", "auth", "free/auth/api_keys",
     "API key issuance, verification, and auditing"),
    ("auth_core", "Authentication Core", "0.1.0", "auth", "free/auth/core",
     "Password hashing, token signing, and runtime auth"),
    ("oauth_providers", "OAuth Providers", "0.1.0", "auth", "free/auth/oauth",
     "Lightweight OAuth 2.0 scaffold with provider registry"),
    ("passwordless_auth", "Passwordless Authentication", "0.1.0", "auth", "free/auth/passwordless",
     "Magic link and one-time code authentication helpers"),
    ("session_management", "Session Management", "0.1.0", "auth", "free/auth/session",
     "Opinionated session management with signed tokens"),
    ("cart", "Cart", "0.1.4", "billing", "free/billing/cart",
     "Shopping cart service for checkout flows"),
    ("inventory", "Inventory", "0.1.4", "billing", "free/billing/inventory",
     "Inventory and pricing service backing Cart + Stripe"),
    ("stripe_payment", "Stripe Payment", "0.1.0", "billing", "free/billing/stripe_payment",
     "Stripe payments and subscription management"),
    ("storage", "Storage", "0.1.0", "business", "free/business/storage",
     "File storage & media management - Upload, store, and retrieve"),
    ("redis", "Redis Cache", "0.1.8", "cache", "free/cache/redis",
     "Production Redis runtime with async and sync client"),
    ("email", "Email", "0.1.10", "communication", "free/communication/email",
     "Email delivery with SMTP support"),
    ("notifications", "Unified Notifications", "0.1.17", "communication", "free/communication/notifications",
     "Email-first notification runtime offering SMTP delivery"),
    ("db_mongo", "MongoDB", "0.1.2", "database", "free/database/db_mongo",
     "MongoDB integration with async driver support and health diagnostics"),
    ("db_sqlite", "SQLite", "0.1.3", "database", "free/database/db_sqlite",
     "SQLite database integration for development"),
    ("db_postgres", "PostgreSQL", "0.1.24", "database", "free/database/db_postgres",
     "SQLAlchemy async+sync Postgres with clean DI and health checks"),
    ("settings", "Application Settings", "0.1.32", "essentials", "free/essentials/settings",
     "Centralized modular configuration management using Pydantic"),
    ("deployment", "Deployment Toolkit", "0.1.3", "essentials", "free/essentials/deployment",
     "Portable Docker, Compose, Makefile, and CI assets for RapidKit"),
    ("middleware", "Middleware", "0.1.13", "essentials", "free/essentials/middleware",
     "HTTP middleware pipeline with FastAPI and NestJS support"),
    ("logging", "Structured Logging & Observability", "0.1.2", "essentials", "free/essentials/logging",
     "Structured logging runtime with correlation IDs and multi-sink"),
    ("observability_core", "Observability Core", "0.1.10", "observability", "free/observability/core",
     "Cohesive metrics, tracing, and structured logging foundation"),
    ("cors", "CORS", "0.1.0", "security", "free/security/cors",
     "Cross-Origin Resource Sharing security module"),
    ("rate_limiting", "Rate Limiting", "0.1.0", "security", "free/security/rate_limiting",
     "Production request throttling with configurable rules"),
    ("security_headers", "Security Headers", "0.1.0", "security", "free/security/security_headers",
     "Harden HTTP responses with industry-standard security headers"),
    ("celery", "Celery", "0.1.1", "tasks", "free/tasks/celery",
     "Production Celery task orchestration for asynchronous jobs"),
    ("users_core", "Users Core", "0.1.0", "users", "free/users/users_core",
     "Opinionated user management backbone that ships immutable"),
    ("users_profiles", "Users Profiles", "0.1.0", "users", "free/users/users_profiles",
     "Extends the Users Core module with rich profile modelling"),
)


FALLBACK_MODULES: tuple[dict[str, Any], ...] = tuple(
    {
        "name": name,
        "display_name": display_name,
        "version": version,
        "category": category,
        "slug": slug,
        "description": description,
        "status": "stable",
    }
    for name, display_name, version, category, slug, description in _ROWS
)
