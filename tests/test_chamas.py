import pytest

from conftest import login, make_user
from tujifund.models import MemberRole
from tujifund.services.authorization_service import AuthorizationError, is_chama_admin
from tujifund.services.chama_service import create_chama, add_member, list_user_chamas, ChamaError
from tujifund.services.wallet_service import get_wallet


class TestChamaService:
    def test_creator_is_admin_and_chama_has_wallet(self, ctx):
        owner = make_user('owner')

        chama = create_chama('  Umoja  ', created_by=owner.id)

        assert chama.name == 'Umoja'
        assert is_chama_admin(owner.id, chama.id)
        assert get_wallet(chama_id=chama.id).balance == 0
        assert chama.get_member_count() == 1

    def test_name_required(self, ctx):
        owner = make_user('owner')
        with pytest.raises(ChamaError):
            create_chama('', created_by=owner.id)

    def test_only_admin_adds_members(self, ctx):
        owner = make_user('owner')
        member = make_user('member')
        third = make_user('third')
        chama = create_chama('Umoja', created_by=owner.id)

        add_member(chama.id, member.id, owner.id)

        with pytest.raises(AuthorizationError):
            add_member(chama.id, third.id, member.id)

    def test_duplicate_member(self, ctx):
        owner = make_user('owner')
        member = make_user('member')
        chama = create_chama('Umoja', created_by=owner.id)
        add_member(chama.id, member.id, owner.id)

        with pytest.raises(ChamaError):
            add_member(chama.id, member.id, owner.id)

    def test_inactive_membership_reactivated(self, ctx):
        owner = make_user('owner')
        member = make_user('member')
        chama = create_chama('Umoja', created_by=owner.id)
        membership = add_member(chama.id, member.id, owner.id)
        membership.is_active = False
        membership_id = membership.id

        again = add_member(chama.id, member.id, owner.id, role=MemberRole.ADMIN.value)

        assert again.id == membership_id
        assert again.is_active
        assert is_chama_admin(member.id, chama.id)

    def test_invalid_role(self, ctx):
        owner = make_user('owner')
        member = make_user('member')
        chama = create_chama('Umoja', created_by=owner.id)

        with pytest.raises(ChamaError):
            add_member(chama.id, member.id, owner.id, role='treasurer')

    def test_list_user_chamas_skips_inactive(self, ctx):
        owner = make_user('owner')
        member = make_user('member')
        umoja = create_chama('Umoja', created_by=owner.id)
        harambee = create_chama('Harambee', created_by=owner.id)
        add_member(umoja.id, member.id, owner.id)
        add_member(harambee.id, member.id, owner.id).is_active = False

        assert list_user_chamas(member.id) == [umoja]
        assert list_user_chamas(owner.id) == [umoja, harambee]


class TestChamaRoutes:
    def test_create_view_and_add_member(self, client, factory):
        factory.user('owner')
        factory.user('member')
        login(client, 'owner')

        response = client.post('/chamas', json={'name': 'Umoja'})
        assert response.status_code == 201
        body = response.get_json()
        chama_id = body['chama']['id']
        assert body['wallet']['chamaId'] == chama_id

        response = client.post(f'/chamas/{chama_id}/members', json={'email': 'member@example.com'})
        assert response.status_code == 201

        view = client.get(f'/chamas/{chama_id}').get_json()
        assert view['chama']['memberCount'] == 2
        assert len(view['members']) == 2

    def test_non_member_cannot_view(self, client, factory):
        factory.user('owner')
        factory.user('outsider')
        login(client, 'owner')
        chama_id = client.post('/chamas', json={'name': 'Umoja'}).get_json()['chama']['id']

        client.post('/auth/logout')
        login(client, 'outsider')

        assert client.get(f'/chamas/{chama_id}').status_code == 403
        response = client.post(f'/chamas/{chama_id}/members', json={'email': 'outsider@example.com'})
        assert response.status_code == 403

    def test_add_unknown_email(self, client, factory):
        factory.user('owner')
        login(client, 'owner')
        chama_id = client.post('/chamas', json={'name': 'Umoja'}).get_json()['chama']['id']

        response = client.post(f'/chamas/{chama_id}/members', json={'email': 'ghost@example.com'})
        assert response.status_code == 404

    def test_list_my_chamas(self, client, factory):
        factory.user('owner')
        factory.user('member')
        login(client, 'owner')
        umoja = client.post('/chamas', json={'name': 'Umoja'}).get_json()['chama']['id']
        client.post('/chamas', json={'name': 'Harambee'})
        client.post(f'/chamas/{umoja}/members', json={'email': 'member@example.com'})

        names = [c['name'] for c in client.get('/chamas').get_json()['chamas']]
        assert names == ['Umoja', 'Harambee']

        client.post('/auth/logout')
        login(client, 'member')
        names = [c['name'] for c in client.get('/chamas').get_json()['chamas']]
        assert names == ['Umoja']

    def test_missing_chama(self, client, factory):
        factory.user('owner')
        login(client, 'owner')
        assert client.get('/chamas/999').status_code == 404
