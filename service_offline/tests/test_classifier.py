"""
Unit tests for route classification.
"""

import pytest

from service_offline.app.routing.classifier import (
    RouteCategory,
    classify,
    is_bypassed,
    is_cacheable_method,
    is_image,
    is_mutating_method,
)


class TestClassify:
    """Test cases for classify()."""

    @pytest.mark.parametrize("path", [
        "/api/auth/session",
        "/api/auth/callback/credentials",
        "/api/auth",
        "/api/posts/42/edit",
        "/api/posts/clx9abc/edit",
    ])
    def test_non_cacheable_api_routes(self, path):
        assert classify(path) == RouteCategory.NO_CACHE

    @pytest.mark.parametrize("path", [
        "/api/public/posts",
        "/api/public/posts?search=python",
        "/api/categories",
        "/api/tags",
        "/api/posts/42",
        "/api/authors",
        "/api/images/logo.png",
    ])
    def test_api_routes(self, path):
        assert classify(path) == RouteCategory.API

    @pytest.mark.parametrize("path", ["/dashboard", "/dashboard/", "/dashboard/new", "/dashboard/edit/3"])
    def test_dashboard_routes(self, path):
        assert classify(path) == RouteCategory.DASHBOARD

    def test_dashboard_prefix_requires_segment_boundary(self):
        assert classify("/dashboards") == RouteCategory.DEFAULT

    def test_post_routes(self):
        assert classify("/post/hello-world") == RouteCategory.POST
        assert classify("/post/hello-world?ref=home") == RouteCategory.POST

    @pytest.mark.parametrize("path", [
        "/manifest.json",
        "/icons/icon-192x192.png",
        "/icons/anything",
        "/_next/static/chunks/main.js",
        "/styles/site.CSS",
        "/fonts/inter.woff2",
        "/favicon.ico",
    ])
    def test_static_routes(self, path):
        assert classify(path) == RouteCategory.STATIC

    @pytest.mark.parametrize("path", ["/", "/about", "/offline", "/category/python"])
    def test_default_routes(self, path):
        assert classify(path) == RouteCategory.DEFAULT

    def test_priority_dashboard_over_static_extension(self):
        assert classify("/dashboard/export.json") == RouteCategory.DASHBOARD

    def test_priority_post_over_static_extension(self):
        assert classify("/post/cover.png") == RouteCategory.POST

    def test_full_url_is_classified_by_path(self):
        assert classify("https://blog.example.com/api/tags?x=1") == RouteCategory.API

    def test_deterministic(self):
        assert [classify("/post/a") for _ in range(3)] == [RouteCategory.POST] * 3


class TestHelpers:
    """Test cases for classifier helpers."""

    def test_only_get_is_cacheable(self):
        assert is_cacheable_method("GET")
        assert is_cacheable_method("get")
        for method in ("POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"):
            assert not is_cacheable_method(method)

    def test_mutating_methods(self):
        for method in ("POST", "put", "PATCH", "DELETE"):
            assert is_mutating_method(method)
        for method in ("GET", "HEAD", "OPTIONS"):
            assert not is_mutating_method(method)

    def test_bypassed_routes(self):
        assert is_bypassed("/api/auth/signin")
        assert is_bypassed("/api/posts/7/edit")
        assert not is_bypassed("/api/posts/7")
        assert not is_bypassed("/api/authors")

    def test_is_image(self):
        assert is_image("/icons/icon-72x72.png")
        assert is_image("/uploads/photo.JPEG")
        assert not is_image("/_next/app.js")
