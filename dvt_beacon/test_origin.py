import unittest

from dvt_beacon.origin import BeaconInitError, ConfiguredEndpoint, ScriptTagResolver, derive_endpoint
from dvt_beacon.page import Element, PageState

PAGE_HTML = """<!doctype html>
<html><head>
<script src="/static/other.js"></script>
<script id="divolte" src="https://example.com/static/dvt.js"></script>
</head><body><p>hi</p></body></html>
"""


class TestDeriveEndpoint(unittest.TestCase):
    def test_script_directory(self):
        self.assertEqual(derive_endpoint("https://example.com/static/dvt.js"), "https://example.com/static/")

    def test_relative_source_uses_page_url(self):
        self.assertEqual(
            derive_endpoint("../js/dvt.js", "https://site.test/app/page.html"),
            "https://site.test/js/",
        )
        self.assertEqual(derive_endpoint("//cdn.test/dvt.js", "https://site.test/"), "https://cdn.test/")

    def test_query_slash_does_not_move_cut(self):
        self.assertEqual(derive_endpoint("https://example.com/s/dvt.js?v=a/b#x/y"), "https://example.com/s/")

    def test_root_script(self):
        self.assertEqual(derive_endpoint("https://example.com/dvt.js"), "https://example.com/")
        self.assertEqual(derive_endpoint("https://example.com"), "https://example.com/")

    def test_ends_with_single_separator(self):
        for src in ("https://a.test/x/y/dvt.js", "http://a.test:8290/dvt.js", "https://a.test/x/"):
            endpoint = derive_endpoint(src)
            self.assertTrue(endpoint.endswith("/"))
            self.assertFalse(endpoint.endswith("//"))
            self.assertTrue(src.startswith(endpoint))

    def test_unusable_source(self):
        with self.assertRaises(BeaconInitError):
            derive_endpoint("dvt.js")
        with self.assertRaises(BeaconInitError):
            derive_endpoint("ftp://example.com/dvt.js")


class TestScriptTagResolver(unittest.TestCase):
    def test_finds_marked_script_in_html(self):
        page = PageState.from_html(PAGE_HTML, "https://site.test/page")
        self.assertEqual(ScriptTagResolver(page).resolve(), "https://example.com/static/")

    def test_current_script_preferred(self):
        page = PageState.from_html(PAGE_HTML, "https://site.test/page")
        page.current_script = Element(tag="script", id="divolte", src="/beacon/dvt.js")
        self.assertEqual(ScriptTagResolver(page).resolve(), "https://site.test/beacon/")

    def test_current_script_without_marker_fails(self):
        # No fallback to the id lookup once the page reports a current script.
        page = PageState.from_html(PAGE_HTML, "https://site.test/page")
        page.current_script = Element(tag="script", id=None, src="https://example.com/static/dvt.js")
        with self.assertRaises(BeaconInitError):
            ScriptTagResolver(page).resolve()

    def test_missing_element(self):
        page = PageState.from_html("<html><script src='/dvt.js'></script></html>", "https://site.test/")
        with self.assertRaises(BeaconInitError) as ctx:
            ScriptTagResolver(page).resolve()
        self.assertIn("id='divolte'", str(ctx.exception))

    def test_marker_on_wrong_tag(self):
        page = PageState.from_html('<div id="divolte"></div>', "https://site.test/")
        with self.assertRaises(BeaconInitError):
            ScriptTagResolver(page).resolve()

    def test_tag_compare_is_case_insensitive(self):
        page = PageState(location="https://site.test/")
        page.elements["divolte"] = Element(tag="SCRIPT", id="divolte", src="https://example.com/static/dvt.js")
        self.assertEqual(ScriptTagResolver(page).resolve(), "https://example.com/static/")

    def test_script_without_src(self):
        page = PageState.from_html('<script id="divolte">inline()</script>', "https://site.test/")
        with self.assertRaises(BeaconInitError):
            ScriptTagResolver(page).resolve()

    def test_base_href_decides_relative_source(self):
        html = '<html><head><base href="https://collector.test/assets/"><script id="divolte" src="dvt.js"></script></head></html>'
        page = PageState.from_html(html, "https://site.test/app/page")
        self.assertEqual(page.base_url, "https://collector.test/assets/")
        self.assertEqual(ScriptTagResolver(page).resolve(), "https://collector.test/assets/")

    def test_relative_base_href_resolves_against_page(self):
        html = '<base href="/cdn/v2/"><script id="divolte" src="js/dvt.js"></script>'
        page = PageState.from_html(html, "https://site.test/app/page")
        self.assertEqual(ScriptTagResolver(page).resolve(), "https://site.test/cdn/v2/js/")

    def test_first_base_href_wins(self):
        html = '<base href="https://one.test/"><base href="https://two.test/"><script id="divolte" src="dvt.js"></script>'
        page = PageState.from_html(html, "https://site.test/")
        self.assertEqual(ScriptTagResolver(page).resolve(), "https://one.test/")

    def test_without_base_href_page_location_is_used(self):
        page = PageState.from_html('<script id="divolte" src=" static/dvt.js "></script>', "https://site.test/app/page")
        self.assertIsNone(page.base_url)
        self.assertEqual(ScriptTagResolver(page).resolve(), "https://site.test/app/static/")

    def test_first_element_with_id_wins(self):
        html = '<script id="divolte" src="https://a.test/x/dvt.js"></script><script id="divolte" src="https://b.test/dvt.js"></script>'
        page = PageState.from_html(html, "https://site.test/")
        self.assertEqual(ScriptTagResolver(page).resolve(), "https://a.test/x/")

    def test_custom_marker(self):
        page = PageState.from_html('<script id="dvt" src="https://c.test/a/dvt.js"></script>', "https://site.test/")
        self.assertEqual(ScriptTagResolver(page, marker="dvt").resolve(), "https://c.test/a/")


class TestConfiguredEndpoint(unittest.TestCase):
    def test_trailing_slash_added(self):
        self.assertEqual(ConfiguredEndpoint("https://c.test/static").resolve(), "https://c.test/static/")
        self.assertEqual(ConfiguredEndpoint("https://c.test").resolve(), "https://c.test/")

    def test_kept_as_is(self):
        self.assertEqual(ConfiguredEndpoint("http://127.0.0.1:8290/").resolve(), "http://127.0.0.1:8290/")

    def test_invalid(self):
        for bad in ("", "c.test/static/", "mailto:x@c.test"):
            with self.assertRaises(BeaconInitError):
                ConfiguredEndpoint(bad).resolve()


if __name__ == "__main__":
    unittest.main()
