import pytest

from conftest import login


@pytest.fixture()
def seller(client, factory):
    user_id = factory.user('mama_mboga')
    login(client, 'mama_mboga')
    return user_id


def list_item(client, **overrides):
    payload = {'title': 'Sukuma wiki', 'price': 40, 'quantity': 10, 'category': 'food'}
    payload.update(overrides)
    return client.post('/marketplace', json=payload)


class TestListings:
    def test_create_and_browse(self, client, seller):
        response = list_item(client)
        assert response.status_code == 201
        item = response.get_json()['item']
        assert item['price'] == 40.0
        assert item['status'] == 'active'

        items = client.get('/marketplace').get_json()['items']
        assert [i['id'] for i in items] == [item['id']]
        assert items[0]['seller']['username'] == 'mama_mboga'

        assert client.get(f"/marketplace/{item['id']}").status_code == 200
        assert len(client.get('/marketplace/user').get_json()['items']) == 1

    def test_missing_item(self, client, seller):
        assert client.get('/marketplace/404').status_code == 404

    @pytest.mark.parametrize('overrides', [{'price': 0}, {'price': 'free'}, {'title': ''},
                                           {'quantity': 1.5}])
    def test_invalid_listing(self, client, seller, overrides):
        assert list_item(client, **overrides).status_code == 400

    def test_chama_listing_needs_membership(self, client, seller):
        assert list_item(client, chamaId=77).status_code == 403

    def test_sold_out_items_hidden(self, client, seller):
        item_id = list_item(client, quantity=0).get_json()['item']['id']
        assert client.get('/marketplace').get_json()['items'] == []
        assert client.get(f'/marketplace/{item_id}').get_json()['item']['status'] == 'sold_out'


class TestUpdateListing:
    def test_seller_restocks(self, client, seller):
        item_id = list_item(client, quantity=0).get_json()['item']['id']

        response = client.put(f'/marketplace/{item_id}', json={'quantity': 3, 'price': 45})

        assert response.status_code == 200
        item = response.get_json()['item']
        assert item['quantity'] == 3
        assert item['price'] == 45.0
        assert item['status'] == 'active'

    def test_other_user_forbidden(self, client, factory, seller):
        item_id = list_item(client).get_json()['item']['id']
        factory.user('jirani')
        client.post('/auth/logout')
        login(client, 'jirani')

        response = client.put(f'/marketplace/{item_id}', json={'quantity': 0})
        assert response.status_code == 403

    def test_nothing_to_update(self, client, seller):
        item_id = list_item(client).get_json()['item']['id']
        assert client.put(f'/marketplace/{item_id}', json={}).status_code == 400

    def test_unknown_item(self, client, seller):
        assert client.put('/marketplace/404', json={'title': 'x'}).status_code == 404
