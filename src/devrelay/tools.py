"""
MCP tool registry for the browser relay.

Three families of tools are exposed:

* forwarded tools: sent to the peer as-is (action = tool name, arguments
  converted to camelCase);
* utility tools: helper methods living in the peer's content scripts,
  sent as a single ``call_utility`` action;
* telemetry tools: answered locally from the telemetry buffers.
"""
from __future__ import annotations

import re
from typing import Any

_LEVELS = ["log", "error", "warn", "info", "debug"]

_TAB_ID = {"type": "number", "description": "The ID of the tab"}
_OPT_TAB_ID = {
    "type": "number",
    "description": "The ID of the tab (optional - all tabs if not specified)",
}
_SELECTOR = {"type": "string", "description": "CSS selector for the element"}


def _tool(
    name: str,
    description: str,
    properties: dict[str, Any] | None = None,
    required: tuple[str, ...] = (),
) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = list(required)
    return {"name": name, "description": description, "inputSchema": schema}


# ---------------------------------------------------------------------------
# Forwarded tools
# ---------------------------------------------------------------------------

_FORWARDED_TOOLS: list[dict[str, Any]] = [
    # Tab management
    _tool("create_tab", "Create a new Chrome tab and optionally navigate to a URL", {
        "url": {"type": "string", "description": "URL to navigate to (optional, defaults to new tab page)"},
        "active": {"type": "boolean", "description": "Whether to make the tab active (default: true)", "default": True},
    }),
    _tool("list_tabs", "List all open Chrome tabs with their URLs and titles"),
    _tool("close_tab", "Close a specific Chrome tab by its ID", {"tab_id": _TAB_ID}, ("tab_id",)),
    _tool("get_tab", "Get details about a specific tab", {"tab_id": _TAB_ID}, ("tab_id",)),
    # Navigation
    _tool("navigate_to", "Navigate a tab to a specific URL", {
        "tab_id": _TAB_ID,
        "url": {"type": "string", "description": "The URL to navigate to"},
    }, ("tab_id", "url")),
    _tool("navigate_back", "Navigate back in tab history", {"tab_id": _TAB_ID}, ("tab_id",)),
    _tool("navigate_forward", "Navigate forward in tab history", {"tab_id": _TAB_ID}, ("tab_id",)),
    _tool("reload_tab", "Reload a tab", {"tab_id": _TAB_ID}, ("tab_id",)),
    # Debugger attachment
    _tool(
        "attach_debugger",
        "Attach Chrome DevTools debugger to a tab to start capturing network, console, and performance data",
        {"tab_id": _TAB_ID}, ("tab_id",),
    ),
    _tool("detach_debugger", "Detach Chrome DevTools debugger from a tab", {"tab_id": _TAB_ID}, ("tab_id",)),
    _tool("list_attached_tabs", "List all tabs that have the debugger attached"),
    # Script execution
    _tool("execute_script", "Execute JavaScript code in a tab's context. Returns the result of the script execution.", {
        "tab_id": _TAB_ID,
        "code": {"type": "string", "description": "JavaScript code to execute"},
    }, ("tab_id", "code")),
    # Page interaction
    _tool("click_element", "Click on an element in the page using a CSS selector",
          {"tab_id": _TAB_ID, "selector": _SELECTOR}, ("tab_id", "selector")),
    _tool("fill_input", "Fill an input field or textarea with a value", {
        "tab_id": _TAB_ID,
        "selector": _SELECTOR,
        "value": {"type": "string", "description": "Value to fill into the input"},
    }, ("tab_id", "selector", "value")),
    _tool("get_element_text", "Get the text content of an element",
          {"tab_id": _TAB_ID, "selector": _SELECTOR}, ("tab_id", "selector")),
    _tool("wait_for_element", "Wait for an element to appear in the page", {
        "tab_id": _TAB_ID,
        "selector": _SELECTOR,
        "timeout": {"type": "number", "description": "Maximum time to wait in milliseconds (default: 30000)", "default": 30000},
    }, ("tab_id", "selector")),
    _tool("scroll_to", "Scroll to an element in the page",
          {"tab_id": _TAB_ID, "selector": _SELECTOR}, ("tab_id", "selector")),
    _tool(
        "inspect_element",
        "Inspect an element and get comprehensive information: attributes, styles, position, "
        "dimensions, structure, properties, and visibility",
        {"tab_id": _TAB_ID, "selector": _SELECTOR}, ("tab_id", "selector"),
    ),
    # Extension management
    _tool("list_extensions", "List all installed Chrome extensions with their details"),
    _tool("get_extension_info", "Get detailed information about a specific Chrome extension",
          {"extension_id": {"type": "string", "description": "The ID of the extension"}}, ("extension_id",)),
    _tool("reload_extension", "Reload a Chrome extension by disabling and re-enabling it",
          {"extension_id": {"type": "string", "description": "The ID of the extension to reload"}}, ("extension_id",)),
    _tool("get_manifest", "Get the manifest.json of the current extension"),
    _tool("get_service_worker_logs", "Get console logs from the extension's service worker", {
        "limit": {"type": "number", "description": "Maximum number of log entries to return (default: 100)", "default": 100},
        "level_filter": {"type": "string", "description": "Filter by log level", "enum": _LEVELS},
    }),
    _tool("clear_service_worker_logs", "Clear all captured service worker logs"),
    _tool("list_external_extensions", "List extensions that have sent logs via the debug helper"),
    _tool("get_external_extension_logs", "Get console logs from an external extension using the debug helper", {
        "extension_id": {"type": "string", "description": "The extension ID to get logs from"},
        "limit": {"type": "number", "description": "Maximum number of logs to return (default: 100)", "default": 100},
        "level_filter": {"type": "string", "description": "Filter by log level", "enum": _LEVELS},
    }, ("extension_id",)),
    _tool("clear_external_extension_logs", "Clear captured logs from external extensions", {
        "extension_id": {"type": "string", "description": "Optional: specific extension ID to clear. If omitted, clears all."},
    }),
]

SCREENSHOT_TOOLS: list[dict[str, Any]] = [
    _tool("capture_screenshot", "Capture a screenshot of a tab's visible area and return it as an image",
          {"tab_id": _TAB_ID}, ("tab_id",)),
    _tool("capture_element_screenshot", "Capture a screenshot of a specific element identified by CSS selector", {
        "tab_id": _TAB_ID,
        "selector": _SELECTOR,
        "padding": {"type": "number", "description": "Optional padding around the element in pixels (default: 0)"},
    }, ("tab_id", "selector")),
]

FORWARDED_TOOL_NAMES = frozenset(t["name"] for t in _FORWARDED_TOOLS)
SCREENSHOT_TOOL_NAMES = frozenset(t["name"] for t in SCREENSHOT_TOOLS)

# ---------------------------------------------------------------------------
# Telemetry tools (served from the local buffers)
# ---------------------------------------------------------------------------

TELEMETRY_TOOLS: list[dict[str, Any]] = [
    _tool(
        "get_network_requests",
        "Get captured network requests from Chrome DevTools. Returns HTTP requests with headers, "
        "status, timing, and response data.",
        {
            "tab_id": _OPT_TAB_ID,
            "limit": {"type": "number", "description": "Maximum number of requests to return (default: 50)", "default": 50},
            "url_filter": {"type": "string", "description": "Optional URL filter (substring match)"},
        },
    ),
    _tool(
        "get_console_logs",
        "Get console logs and messages from Chrome DevTools. Includes console.log, console.error, console.warn, etc.",
        {
            "tab_id": _OPT_TAB_ID,
            "limit": {"type": "number", "description": "Maximum number of log entries to return (default: 50)", "default": 50},
            "level_filter": {"type": "string", "description": "Filter by log level", "enum": _LEVELS},
        },
    ),
    _tool(
        "get_performance_metrics",
        "Get performance metrics from Chrome DevTools. Includes timing, resources, and performance data.",
        {
            "tab_id": _OPT_TAB_ID,
            "limit": {"type": "number", "description": "Maximum number of metric entries to return (default: 20)", "default": 20},
        },
    ),
    _tool(
        "clear_devtools_data",
        "Clear all captured DevTools data (network requests, console logs, performance metrics) "
        "for a specific tab or all tabs",
        {"tab_id": _OPT_TAB_ID},
    ),
]

# ---------------------------------------------------------------------------
# Utility tools: name -> (content-script utility, method, positional args)
# ---------------------------------------------------------------------------

UTILITY_TOOLS: dict[str, tuple[str, str, tuple[str, ...]]] = {
    # DOM
    "query_selector_all": ("DOMUtilities", "querySelectorAll", ("selector",)),
    "xpath_query": ("DOMUtilities", "xpathQuery", ("xpath",)),
    "get_elements_by_attribute": ("DOMUtilities", "getElementsByAttribute", ("attribute", "value")),
    "find_elements_by_text": ("DOMUtilities", "findElementsByText", ("text", "exact_match", "tag")),
    "get_parent_element": ("DOMUtilities", "getParentElement", ("selector", "levels")),
    "get_sibling_elements": ("DOMUtilities", "getSiblingElements", ("selector", "direction")),
    "get_child_elements": ("DOMUtilities", "getChildElements", ("selector", "direct_only")),
    "extract_structured_data": ("DOMUtilities", "extractStructuredData", ("container_selector", "item_selector", "schema")),
    "get_computed_styles": ("DOMUtilities", "getComputedStyles", ("selector", "properties")),
    "get_all_links": ("DOMUtilities", "getAllLinks", ("filters",)),
    "get_all_images": ("DOMUtilities", "getAllImages", ("filters",)),
    "extract_json_ld": ("DOMUtilities", "extractJsonLd", ()),
    "get_element_path": ("DOMUtilities", "getElementPath", ("selector",)),
    "validate_selector": ("DOMUtilities", "validateSelector", ("selector",)),
    "highlight_element": ("DOMUtilities", "highlightElement", ("selector", "color", "duration")),
    # Interaction
    "hover_element": ("InteractionUtilities", "hoverElement", ("selector", "duration")),
    "drag_and_drop": ("InteractionUtilities", "dragAndDrop", ("source_selector", "target_selector", "duration")),
    "type_with_delay": ("InteractionUtilities", "typeWithDelay", ("selector", "text", "delay_ms", "clear")),
    "select_dropdown_option": ("InteractionUtilities", "selectDropdownOption", ("selector", "option_value", "match_by")),
    "trigger_event": ("InteractionUtilities", "triggerEvent", ("selector", "event_type", "event_options")),
    "fill_form_batch": ("InteractionUtilities", "fillFormBatch", ("form_data", "delay_between_fields")),
    "bulk_click_elements": ("InteractionUtilities", "bulkClickElements", ("selectors", "delay_between_clicks")),
    "auto_scroll_to_bottom": ("InteractionUtilities", "autoScrollToBottom", ("scroll_delay", "max_scrolls", "container_selector")),
    "smart_wait": ("InteractionUtilities", "smartWait", ("timeout",)),
    # Extraction
    "extract_table_data": ("ExtractionUtilities", "extractTableData", ("selector", "options")),
    "extract_list_data": ("ExtractionUtilities", "extractListData", ("selector", "options")),
    "get_page_context": ("ExtractionUtilities", "getPageContext", ()),
    "extract_form_data": ("ExtractionUtilities", "extractFormData", ("form_selector",)),
    "get_local_storage": ("ExtractionUtilities", "getLocalStorage", ()),
    "get_session_storage": ("ExtractionUtilities", "getSessionStorage", ()),
    # Observers
    "wait_for_element_advanced": ("ObserverUtilities", "waitForElement", ("selector", "options")),
    "wait_for_condition": ("ObserverUtilities", "waitForCondition", ("condition_function", "options")),
    "wait_for_ajax": ("ObserverUtilities", "waitForAjax", ("options",)),
    "wait_for_text": ("ObserverUtilities", "waitForText", ("text", "options")),
    "wait_for_url_change": ("ObserverUtilities", "waitForUrlChange", ("options",)),
    "wait_for_images": ("ObserverUtilities", "waitForImages", ("selector", "timeout")),
}


def _p(type_: str, description: str, **extra: Any) -> dict[str, Any]:
    return {"type": type_, "description": description, **extra}


_WAIT_OPTIONS = "Options such as timeout (ms)"

# name -> (description, {argument: property}, required arguments besides tab_id).
# Properties are listed in the order the peer receives them positionally.
_UTILITY_DOCS: dict[str, tuple[str, dict[str, dict[str, Any]], tuple[str, ...]]] = {
    "query_selector_all": (
        "Query all elements matching a CSS selector and return their properties",
        {"selector": _p("string", "CSS selector")}, ("selector",)),
    "xpath_query": (
        "Query elements using XPath (more powerful than CSS selectors)",
        {"xpath": _p("string", "XPath expression")}, ("xpath",)),
    "get_elements_by_attribute": (
        "Find elements by attribute value (e.g., data-id, aria-label)",
        {"attribute": _p("string", "Attribute name"),
         "value": _p("string", "Attribute value (optional)")}, ("attribute",)),
    "find_elements_by_text": (
        "Find elements containing specific text",
        {"text": _p("string", "Text to search for"),
         "exact_match": _p("boolean", "Exact match or partial", default=False),
         "tag": _p("string", "Limit to specific tag", default="*")}, ("text",)),
    "get_parent_element": (
        "Get parent element of a given element",
        {"selector": _p("string", "Child element selector"),
         "levels": _p("number", "Levels to go up", default=1)}, ("selector",)),
    "get_sibling_elements": (
        "Get sibling elements (next/previous/all)",
        {"selector": _p("string", "Reference element selector"),
         "direction": _p("string", "Which siblings to return", enum=["next", "previous", "all"], default="all")},
        ("selector",)),
    "get_child_elements": (
        "Get all child elements of a parent",
        {"selector": _p("string", "Parent selector"),
         "direct_only": _p("boolean", "Direct children only", default=True)}, ("selector",)),
    "extract_structured_data": (
        "Extract data from repeating patterns (lists, grids, tables)",
        {"container_selector": _p("string", "Container selector"),
         "item_selector": _p("string", "Item selector"),
         "schema": _p("object", "Map of field names to selectors")},
        ("container_selector", "item_selector", "schema")),
    "get_computed_styles": (
        "Get computed CSS styles for an element",
        {"selector": _p("string", "Element selector"),
         "properties": _p("array", "Specific properties", items={"type": "string"})}, ("selector",)),
    "get_all_links": (
        "Get all links on the page with optional filters",
        {"filters": _p("object", "Filter options (href, text, domain)")}, ()),
    "get_all_images": (
        "Get all images on the page with dimensions",
        {"filters": _p("object", "Filter options (minWidth, minHeight)")}, ()),
    "extract_json_ld": ("Extract JSON-LD structured data (Schema.org)", {}, ()),
    "get_element_path": (
        "Get complete CSS path of an element from root",
        {"selector": _p("string", "Element selector")}, ("selector",)),
    "validate_selector": (
        "Validate if a selector matches any elements",
        {"selector": _p("string", "Selector to validate")}, ("selector",)),
    "highlight_element": (
        "Visually highlight an element (for debugging)",
        {"selector": _p("string", "Element selector"),
         "color": _p("string", "Highlight color", default="yellow"),
         "duration": _p("number", "Duration in ms (0 = permanent)", default=3000)}, ("selector",)),
    "hover_element": (
        "Simulate mouse hover over an element",
        {"selector": _p("string", "Element selector"),
         "duration": _p("number", "Hover duration in ms", default=1000)}, ("selector",)),
    "drag_and_drop": (
        "Drag element from source to target",
        {"source_selector": _p("string", "Source element"),
         "target_selector": _p("string", "Target element"),
         "duration": _p("number", "Animation duration in ms", default=500)},
        ("source_selector", "target_selector")),
    "type_with_delay": (
        "Type text with natural delays between keystrokes",
        {"selector": _p("string", "Input element selector"),
         "text": _p("string", "Text to type"),
         "delay_ms": _p("number", "Delay between keys (random if null)"),
         "clear": _p("boolean", "Clear existing text", default=False)}, ("selector", "text")),
    "select_dropdown_option": (
        "Select option from dropdown (select element)",
        {"selector": _p("string", "Select element selector"),
         "option_value": _p("string", "Option value or text"),
         "match_by": _p("string", "How option_value is matched", enum=["value", "text", "index"], default="value")},
        ("selector", "option_value")),
    "trigger_event": (
        "Trigger a custom event on an element",
        {"selector": _p("string", "Element selector"),
         "event_type": _p("string", "Event type (change, input, focus, etc.)"),
         "event_options": _p("object", "Additional event options")}, ("selector", "event_type")),
    "fill_form_batch": (
        "Fill multiple form fields at once",
        {"form_data": _p("object", "Map of selectors to values"),
         "delay_between_fields": _p("number", "Delay in ms", default=200)}, ("form_data",)),
    "bulk_click_elements": (
        "Click multiple elements in sequence",
        {"selectors": _p("array", "Array of selectors", items={"type": "string"}),
         "delay_between_clicks": _p("number", "Delay in ms", default=500)}, ("selectors",)),
    "auto_scroll_to_bottom": (
        "Automatically scroll to bottom (for infinite scroll)",
        {"scroll_delay": _p("number", "Delay between scrolls in ms", default=1000),
         "max_scrolls": _p("number", "Maximum scrolls", default=10),
         "container_selector": _p("string", "Container selector (optional)")}, ()),
    "smart_wait": (
        "Wait for page to be fully loaded (network + DOM)",
        {"timeout": _p("number", "Timeout in ms", default=10000)}, ()),
    "extract_table_data": (
        "Extract data from HTML tables as JSON",
        {"selector": _p("string", "Table selector"),
         "options": _p("object", "Extraction options")}, ("selector",)),
    "extract_list_data": (
        "Extract data from lists (ul/ol) as array",
        {"selector": _p("string", "List selector"),
         "options": _p("object", "Extraction options")}, ("selector",)),
    "get_page_context": ("Get comprehensive page metadata (title, URL, meta tags, frameworks, etc.)", {}, ()),
    "extract_form_data": (
        "Extract all form fields and their current values",
        {"form_selector": _p("string", "Form selector")}, ("form_selector",)),
    "get_local_storage": ("Read all local storage data", {}, ()),
    "get_session_storage": ("Read all session storage data", {}, ()),
    "wait_for_element_advanced": (
        "Wait for element to appear in DOM with visibility option",
        {"selector": _p("string", "Element selector"),
         "options": _p("object", "Options: timeout (ms, default 10000), visible (default false)")}, ("selector",)),
    "wait_for_condition": (
        "Wait for a custom condition to become true",
        {"condition_function": _p("string", "JS function returning boolean"),
         "options": _p("object", _WAIT_OPTIONS)}, ("condition_function",)),
    "wait_for_ajax": (
        "Wait for all AJAX/Fetch requests to complete",
        {"options": _p("object", "Options: timeout (ms, default 10000), idleTime (ms, default 500)")}, ()),
    "wait_for_text": (
        "Wait for specific text to appear on page",
        {"text": _p("string", "Text to wait for"),
         "options": _p("object", "Options: timeout (ms, default 10000), exactMatch (default false)")}, ("text",)),
    "wait_for_url_change": (
        "Wait for URL to change",
        {"options": _p("object", "Options: expectedUrl, timeout (ms, default 30000)")}, ()),
    "wait_for_images": (
        "Wait for all images to load",
        {"selector": _p("string", "Image selector", default="img"),
         "timeout": _p("number", "Timeout in ms", default=10000)}, ()),
}


def _utility_schema(name: str) -> dict[str, Any]:
    description, properties, required = _UTILITY_DOCS[name]
    return _tool(name, description, {"tab_id": _p("number", "Tab ID"), **properties}, ("tab_id",) + required)


UTILITY_TOOL_SCHEMAS: list[dict[str, Any]] = [_utility_schema(name) for name in UTILITY_TOOLS]

TOOL_SCHEMAS: list[dict[str, Any]] = (
    _FORWARDED_TOOLS + SCREENSHOT_TOOLS + TELEMETRY_TOOLS + UTILITY_TOOL_SCHEMAS
)

_SNAKE_RE = re.compile(r"_([a-z])")


def camel_case_args(args: dict[str, Any]) -> dict[str, Any]:
    """``tab_id`` -> ``tabId``; the peer's handlers read camelCase keys."""
    return {_SNAKE_RE.sub(lambda m: m.group(1).upper(), key): value for key, value in args.items()}
