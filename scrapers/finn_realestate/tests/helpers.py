"""Shared fixtures and fakes for finn.no scraper tests."""

import json
import os
from unittest.mock import Mock

import requests


FIXTURE_DIR = os.path.join(os.path.dirname(__file__), 'fixtures')


def load_fixture(name):
    """Read an HTML fixture file."""
    with open(os.path.join(FIXTURE_DIR, name), 'r', encoding='utf-8') as f:
        return f.read()


def encode_reference_stream(tree):
    """Flatten a tree into the indexed-reference array format."""
    values = []

    def add(value):
        if value is None:
            return -5
        idx = len(values)
        values.append(None)
        if isinstance(value, dict):
            entry = {}
            for key, item in value.items():
                key_idx = len(values)
                values.append(key)
                entry[f'_{key_idx}'] = add(item)
            values[idx] = entry
        elif isinstance(value, list):
            values[idx] = [add(item) for item in value]
        else:
            values[idx] = value
        return idx

    add(tree)
    return values


def remix_page(tree):
    """Render a page embedding the tree as window.__remixContext."""
    return (
        '<!DOCTYPE html><html><head><title>FINN</title></head><body>'
        '<div id="root"></div>'
        f'<script>window.__remixContext = {json.dumps(tree, ensure_ascii=False)};</script>'
        '</body></html>'
    )


def stream_page(tree):
    """Render a page embedding the tree as an indexed-reference stream."""
    payload = json.dumps(encode_reference_stream(tree), ensure_ascii=False)
    return (
        '<!DOCTYPE html><html><head><title>FINN</title></head><body>'
        '<script>window.__reactRouterContext = {"basename": "/", "future": {}};'
        'window.__reactRouterContext.stream = new ReadableStream({start(controller){'
        'window.__reactRouterContext.streamController = controller;}});</script>'
        f'<script>window.__reactRouterContext.streamController.enqueue({json.dumps(payload)});</script>'
        '</body></html>'
    )


def search_tree(docs, last=1, current=1):
    """Build a search results page state."""
    return {
        'state': {
            'loaderData': {
                'root': {'locale': 'nb'},
                'routes/realestate+/$section.search': {
                    'results': {
                        'docs': docs,
                        'metadata': {
                            'paging': {'param': 'page', 'current': current, 'last': last},
                            'result_size': {'match_count': len(docs)},
                        },
                    },
                },
            },
        },
    }


def make_doc(ad_id, **fields):
    """Build one raw search result."""
    doc = {
        'ad_id': ad_id,
        'heading': f'Annonse {ad_id}',
        'location': 'Storgata 1, Hvaler',
        'local_area_name': 'Hvaler',
        'price_suggestion': {'amount': 3200000, 'currency_code': 'NOK'},
        'property_type_description': 'Enebolig',
        'canonical_url': f'https://www.finn.no/realestate/homes/ad.html?finnkode={ad_id}',
        'coordinates': {'lat': 59.06, 'lon': 11.02},
    }
    doc.update(fields)
    return doc


def fake_response(text='', status_code=200):
    response = Mock()
    response.text = text
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status_code} Error", response=response
        )
    return response


def fake_session(handler):
    """Session whose get() answers through handler(url) -> text or response."""
    session = Mock()

    def get(url, **kwargs):
        result = handler(url)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, str):
            return fake_response(result)
        return result

    session.get.side_effect = get
    return session
