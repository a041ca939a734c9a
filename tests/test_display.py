"""
Tests for SectionView: loading, live refresh on change events and
unsubscribing.
"""

from unittest.mock import MagicMock

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from sitecms.display import SectionView
from sitecms.events import ChangeEvent

BASE_URL = 'http://test-cms:8080'


def section_response(make_response, data, updated_at='2024-01-01T00:00:00Z'):
    return make_response(json_data={'success': True, 'data': data, 'updatedAt': updated_at})


class TestActivate:
    """Tests for activating a view."""

    def test_initial_content_is_defaults(self, cms_client, registry):
        view = SectionView('technology', 'hero', cms_client, registry=registry)

        assert view.loading is True
        assert view.content == {'title': 'Technology'}
        assert not view.active

    def test_activate_fetches(self, cms_client, registry, mock_session, make_response):
        mock_session.get.return_value = section_response(make_response, {'title': 'Hero'})

        view = SectionView('technology', 'hero', cms_client, registry=registry)
        view.activate()

        assert view.active
        assert view.loading is False
        assert view.content == {'title': 'Hero'}
        assert view.updated_at == '2024-01-01T00:00:00Z'
        assert view.fetch_count == 1

    def test_activate_twice_subscribes_once(self, cms_client, broadcaster, registry, mock_session, make_response):
        mock_session.get.return_value = section_response(make_response, {'title': 'Hero'})

        view = SectionView('technology', 'hero', cms_client, registry=registry)
        view.activate()
        view.activate()

        assert broadcaster.listener_count() == 1
        assert view.fetch_count == 1

    def test_offline_uses_defaults(self, cms_client, registry, mock_session):
        mock_session.get.side_effect = RequestsConnectionError()

        with SectionView('technology', 'innovation', cms_client, registry=registry) as view:
            assert view.content['title'] == 'Salient features'
            assert len(view.items) == 6

    def test_custom_defaults(self, cms_client, registry, mock_session):
        mock_session.get.side_effect = RequestsConnectionError()

        view = SectionView('technology', 'hero', cms_client, registry=registry, defaults={'title': 'Custom'})
        view.activate()

        assert view.content == {'title': 'Custom'}
        assert registry.get('technology', 'hero').defaults == {'title': 'Technology'}


class TestLiveRefresh:
    """Tests for refreshing on change events."""

    def test_save_triggers_refetch(self, cms_client, registry, mock_session, make_response):
        mock_session.get.return_value = section_response(make_response, {'title': 'Old'})
        view = SectionView('technology', 'hero', cms_client, registry=registry)
        view.activate()

        mock_session.post.return_value = section_response(make_response, {'title': 'New'}, '2024-02-01T00:00:00Z')
        mock_session.get.return_value = section_response(make_response, {'title': 'New'}, '2024-02-01T00:00:00Z')
        cms_client.save('technology', 'hero', {'title': 'New'})

        assert view.content == {'title': 'New'}
        assert view.fetch_count == 2

    def test_other_section_ignored(self, cms_client, broadcaster, registry, mock_session, make_response):
        mock_session.get.return_value = section_response(make_response, {'title': 'Hero'})
        view = SectionView('technology', 'hero', cms_client, registry=registry)
        view.activate()

        broadcaster.publish(ChangeEvent('technology', 'intro'))
        broadcaster.publish(ChangeEvent('investor-relations', 'hero'))

        assert view.fetch_count == 1

    def test_deactivated_view_ignores_events(self, cms_client, broadcaster, registry, mock_session, make_response):
        mock_session.get.return_value = section_response(make_response, {'title': 'Hero'})
        view = SectionView('technology', 'hero', cms_client, registry=registry)
        view.activate()
        view.deactivate()
        view.deactivate()

        broadcaster.publish(ChangeEvent('technology', 'hero'))

        assert not view.active
        assert view.fetch_count == 1
        assert broadcaster.listener_count() == 0

    def test_on_change_callback(self, cms_client, registry, mock_session, make_response):
        mock_session.get.return_value = section_response(make_response, {'title': 'Hero'})
        callback = MagicMock()

        view = SectionView('technology', 'hero', cms_client, registry=registry, on_change=callback)
        view.activate()

        callback.assert_called_once_with(view)

    def test_failing_callback_does_not_break_refresh(self, cms_client, registry, mock_session, make_response):
        mock_session.get.return_value = section_response(make_response, {'title': 'Hero'})
        callback = MagicMock(side_effect=RuntimeError("render failed"))

        view = SectionView('technology', 'hero', cms_client, registry=registry, on_change=callback)
        view.activate()

        assert view.content == {'title': 'Hero'}


class TestAccessors:
    """Tests for field and image helpers."""

    @pytest.fixture
    def view(self, cms_client, registry, mock_session, make_response):
        mock_session.get.return_value = section_response(make_response, {
            'title': 'Benefits',
            'imageUrl': '/uploads/images/b.png',
            'items': [
                {'icon': '', 'title': 'Shown', 'description': 'Yes'},
                {'icon': '', 'title': '', 'description': ''},
            ],
        })
        section_view = SectionView('technology', 'benefits', cms_client, registry=registry)
        section_view.activate()
        return section_view

    def test_field(self, view):
        assert view.field('title') == 'Benefits'
        assert view.field('missing', 'fallback') == 'fallback'

    def test_image_url(self, view):
        assert view.image_url() == f"{BASE_URL}/uploads/images/b.png"
        assert view.image_url('bgImageUrl') == ''

    def test_items_hide_empty(self, view):
        assert [item['title'] for item in view.items] == ['Shown']
