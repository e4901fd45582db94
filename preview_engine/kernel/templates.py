"""
Preview Kernel — Mustache templates

Every compiled preview is rendered through DOCUMENT_TEMPLATE, so all
documents share one shell: doctype, charset, viewport, the CDN utility
stylesheet and a single inline <style> block. Bodies are pre-rendered HTML
and are inserted unescaped ({{{body}}}); titles and error text are escaped.
"""

from __future__ import annotations

STYLESHEET_URL = "https://cdn.tailwindcss.com"

# ─────────────────────────────────────────────────────────────────────────────
# Document shell
# ─────────────────────────────────────────────────────────────────────────────

DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{title}}</title>
  <script src="{{stylesheet_url}}"></script>
  <style>{{{css}}}</style>
</head>
<body{{#body_class}} class="{{.}}"{{/body_class}}>
{{{body}}}
</body>
</html>
"""

# ─────────────────────────────────────────────────────────────────────────────
# Placeholders
# ─────────────────────────────────────────────────────────────────────────────

PLACEHOLDER_BODY = """<div class="min-h-screen flex items-center justify-center bg-gray-50">
  <div class="text-center max-w-2xl p-8">
    <h1 class="text-4xl font-bold text-gray-900 mb-4">{{heading}}</h1>
    <p class="text-gray-600">{{subtitle}}</p>
    {{#badge}}
    <div class="mt-6 text-sm text-gray-500">
      <span class="inline-flex items-center px-2.5 py-0.5 rounded-full text-xs font-medium bg-blue-100 text-blue-800">{{.}}</span>
    </div>
    {{/badge}}
    {{#button}}
    <div class="mt-6">
      <button class="bg-{{color}}-500 hover:bg-{{color}}-700 text-white font-bold py-2 px-4 rounded">{{label}}</button>
    </div>
    {{/button}}
  </div>
</div>"""

LOADING_BODY = """<div class="text-center text-gray-400">
  <div class="animate-spin rounded-full h-12 w-12 border-b-2 border-gray-300 mx-auto mb-4"></div>
  <p class="text-sm">{{message}}</p>
</div>"""

MINIMAL_BODY = """<div class="min-h-screen flex items-center justify-center bg-gray-50">
  <div class="text-center text-gray-500">
    <p class="text-lg font-medium mb-2">Preview unavailable</p>
    <p class="text-sm">{{detail}}</p>
  </div>
</div>"""

# ─────────────────────────────────────────────────────────────────────────────
# Express API catalog
# ─────────────────────────────────────────────────────────────────────────────

API_CATALOG_BODY = """<div class="min-h-screen p-8">
  <div class="max-w-4xl mx-auto">
    <h1 class="text-4xl font-bold text-gray-900 mb-2">Express API Server</h1>
    <p class="text-gray-600 mb-8">RESTful API built with Express.js</p>
    <div class="grid grid-cols-1 md:grid-cols-2 lg:grid-cols-3 gap-6">
      {{#endpoints}}
      <div class="bg-white p-6 rounded-lg shadow-md border">
        <h3 class="font-semibold text-lg mb-2">{{method}} {{path}}</h3>
        <p class="text-gray-600 text-sm">API endpoint available</p>
        <div class="mt-4">
          <span class="px-3 py-1 bg-green-100 text-green-800 rounded-full text-xs font-medium">Active</span>
        </div>
      </div>
      {{/endpoints}}
      <div class="bg-white p-6 rounded-lg shadow-md border">
        <h3 class="font-semibold text-lg mb-2">Health Check</h3>
        <p class="text-gray-600 text-sm">Server status monitoring</p>
        <div class="mt-4">
          <span class="px-3 py-1 bg-blue-100 text-blue-800 rounded-full text-xs font-medium">Healthy</span>
        </div>
      </div>
    </div>
    {{^endpoints}}
    <p class="mt-6 text-sm text-gray-500">No routes detected yet.</p>
    {{/endpoints}}
    <div class="mt-8 p-6 bg-gray-100 rounded-lg">
      <h3 class="font-semibold mb-4">API Documentation</h3>
      <div class="space-y-2 text-sm text-gray-700">
        <p><strong>Base URL:</strong> http://localhost:3000</p>
        <p><strong>Content-Type:</strong> application/json</p>
      </div>
    </div>
  </div>
</div>"""

# ─────────────────────────────────────────────────────────────────────────────
# Error view
# ─────────────────────────────────────────────────────────────────────────────

ERROR_BODY = """<div class="min-h-screen flex items-center justify-center bg-gray-900">
  <div class="text-center text-gray-400 max-w-md">
    <h1 class="text-lg font-medium mb-2 text-red-400">{{heading}}</h1>
    <p class="text-sm mb-3">{{summary}}</p>
    <div class="text-xs text-red-300 bg-red-900/20 p-3 rounded border border-red-800 mb-4 text-left">
      <pre class="whitespace-pre-wrap">{{message}}</pre>
    </div>
    <button type="button" data-action="retry" class="px-4 py-2 bg-gray-700 hover:bg-gray-600 rounded">Try Again</button>
  </div>
</div>"""
