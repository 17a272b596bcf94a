"""
Tests for workspace export and import.

Run with: python -m pytest tests/test_backup.py -v
"""
import base64
import io
import json

from conftest import bearer, png_bytes, text_slide, upload


def build_workspace(client, headers):
    """Gallery with an image and two text slides, all queued, a theme and a logo."""
    image = upload(client, headers, [(png_bytes('red'), 'abertura.png')]).get_json()['items'][0]
    slides = text_slide(client, headers, title='Hino', content='Um\n\nDois').get_json()
    for gallery_id in [image['id']] + [s['id'] for s in slides]:
        client.post('/api/playlist/items', headers=headers, json={'galleryItemId': gallery_id})

    theme = client.post('/api/themes', headers=headers,
                        json={'name': 'Natal', 'color': '#ff0000', 'fontSize': 64}).get_json()
    client.put('/api/projector/state', headers=headers,
               json={'themeId': theme['id'], 'fitMode': 'cover', 'volume': 55, 'isLive': True})
    client.put('/api/playlists/current', headers=headers, json={'name': 'Natal', 'loop': True})
    client.post('/api/projector/logo', headers=headers, content_type='multipart/form-data',
                data={'file': (io.BytesIO(png_bytes('white')), 'logo.png')})


class TestExport:

    def test_document_shape(self, client, auth_headers):
        build_workspace(client, auth_headers)

        response = client.get('/api/backup/export', headers=auth_headers)
        document = response.get_json()

        assert response.status_code == 200
        assert 'attachment' in response.headers['Content-Disposition']
        assert document['version'] == 2
        assert len(document['galleryItems']) == 3
        assert len(document['playlistItems']) == 3
        assert document['playlists'][0]['loop'] is True
        assert document['themes'][0]['name'] == 'Natal'
        assert document['currentTheme']['name'] == 'Natal'
        assert document['settings']['isLive'] is False
        assert document['settings']['logoUrl'] == ''
        assert document['logoBlobData'].startswith('data:image/png;base64,')

    def test_file_contents_embedded(self, client, auth_headers):
        content = png_bytes('red')
        upload(client, auth_headers, [(content, 'abertura.png')])

        item = client.get('/api/backup/export', headers=auth_headers).get_json()['galleryItems'][0]

        assert 'url' not in item
        header, encoded = item['blobData'].split(',', 1)
        assert header == 'data:image/png;base64'
        assert base64.b64decode(encoded) == content

    def test_text_slides_have_no_data(self, client, auth_headers):
        text_slide(client, auth_headers)

        item = client.get('/api/backup/export', headers=auth_headers).get_json()['galleryItems'][0]

        assert item['blobData'] is None


class TestImport:

    def test_round_trip_into_another_account(self, client, auth_headers, create_user):
        build_workspace(client, auth_headers)
        document = client.get('/api/backup/export', headers=auth_headers).get_json()
        other = bearer(create_user('filial'))

        response = client.post('/api/backup/import', headers=other, json=document)

        assert response.status_code == 200
        assert response.get_json() == {'galleryItems': 3, 'playlistItems': 3, 'themes': 1, 'skipped': 0}

        playlist = client.get('/api/playlist', headers=other).get_json()
        assert [i['type'] for i in playlist['items']] == ['image', 'text', 'text']
        assert playlist['playlist']['name'] == 'Natal'
        assert playlist['presented'] is False

        state = client.get('/api/projector/state', headers=other).get_json()
        assert state['fitMode'] == 'cover'
        assert state['volume'] == 55
        assert state['isLive'] is False
        assert state['hasLogo'] is True
        assert state['logoUrl'] == '/api/projector/logo'
        themes = client.get('/api/themes', headers=other).get_json()
        assert state['themeId'] == themes[1]['id']

        image = playlist['items'][0]
        assert client.get(image['url'], headers=other).data == png_bytes('red')
        assert image['thumbnailUrl'] is not None

    def test_import_replaces_workspace(self, client, auth_headers):
        text_slide(client, auth_headers, title='Antigo', content='velho')
        document = {
            'version': 2,
            'galleryItems': [{'id': 'a', 'type': 'text', 'name': 'Novo', 'textContent': 'novo'}],
            'playlistItems': [{'id': 'p', 'galleryItemId': 'a', 'order': 0}],
        }

        client.post('/api/backup/import', headers=auth_headers, json=document)

        gallery = client.get('/api/gallery', headers=auth_headers).get_json()
        assert [i['name'] for i in gallery] == ['Novo']

    def test_media_without_data_skipped(self, client, auth_headers):
        document = {
            'version': 2,
            'galleryItems': [
                {'id': 1, 'type': 'video', 'name': 'culto.mp4', 'blobData': None},
                {'id': 2, 'type': 'text', 'name': 'Aviso', 'textContent': 'Bem-vindos'},
            ],
            'playlistItems': [
                {'id': 10, 'galleryItemId': 1, 'order': 0},
                {'id': 11, 'galleryItemId': 2, 'order': 1},
            ],
        }

        counts = client.post('/api/backup/import', headers=auth_headers, json=document).get_json()

        assert counts == {'galleryItems': 1, 'playlistItems': 1, 'themes': 0, 'skipped': 1}

    def test_settings_never_import_live_mode(self, client, auth_headers):
        document = {'version': 2, 'settings': {'isLive': True, 'muted': False, 'logoUrl': 'http://x/logo.png'}}

        client.post('/api/backup/import', headers=auth_headers, json=document)

        state = client.get('/api/projector/state', headers=auth_headers).get_json()
        assert state['isLive'] is False
        assert state['muted'] is False
        assert state['logoUrl'] == ''

    def test_unsupported_version(self, client, auth_headers):
        response = client.post('/api/backup/import', headers=auth_headers, json={'version': 1})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Versão de backup não suportada: 1'

    def test_invalid_document(self, client, auth_headers):
        document = {'version': 2, 'galleryItems': [{'id': 1, 'type': 'pdf', 'name': 'x'}]}

        response = client.post('/api/backup/import', headers=auth_headers, json=document)

        assert response.status_code == 400
        assert response.get_json()['message'].startswith('Arquivo de backup inválido')

    def test_corrupt_file_data_leaves_workspace(self, client, auth_headers):
        text_slide(client, auth_headers, title='Mantido', content='x')
        document = {
            'version': 2,
            'galleryItems': [{'id': 1, 'type': 'image', 'name': 'a.png', 'blobData': 'data:image/png;base64,@@'}],
        }

        response = client.post('/api/backup/import', headers=auth_headers, json=document)

        assert response.status_code == 400
        gallery = client.get('/api/gallery', headers=auth_headers).get_json()
        assert [i['name'] for i in gallery] == ['Mantido']

    def test_multipart_upload(self, client, auth_headers):
        document = {'version': 2, 'galleryItems': [{'id': 1, 'type': 'text', 'name': 'Arquivo'}]}
        data = {'file': (io.BytesIO(json.dumps(document).encode('utf-8')), 'backup.json')}

        response = client.post('/api/backup/import', headers=auth_headers, data=data,
                               content_type='multipart/form-data')

        assert response.get_json()['galleryItems'] == 1

    def test_multipart_not_json(self, client, auth_headers):
        data = {'file': (io.BytesIO(b'\xff\xfe not json'), 'backup.json')}

        response = client.post('/api/backup/import', headers=auth_headers, data=data,
                               content_type='multipart/form-data')

        assert response.status_code == 400

    def test_failed_import_keeps_existing_files(self, client, app, user, auth_headers, monkeypatch):
        import telao.lib.backup as backup_module

        item = upload(client, auth_headers, [(png_bytes('green'), 'capa.png')]).get_json()['items'][0]
        stored = list((app.config['UPLOAD_FOLDER'] / f'user_{user.id}').iterdir())
        thumb = app.config['THUMBNAILS_FOLDER'] / f"{item['id']}_thumb.jpg"

        def broken_theme(user_id, payload):
            raise RuntimeError('disk full')
        monkeypatch.setattr(backup_module, '_theme_from_backup', broken_theme)
        document = {
            'version': 2,
            'galleryItems': [{'id': 1, 'type': 'text', 'name': 'Novo'}],
            'themes': [{'id': 7, 'name': 'Quebrado'}],
        }

        response = client.post('/api/backup/import', headers=auth_headers, json=document)

        assert response.status_code == 500
        gallery = client.get('/api/gallery', headers=auth_headers).get_json()
        assert [i['name'] for i in gallery] == ['capa.png']
        assert len(stored) == 1 and stored[0].exists()
        assert thumb.exists()

    def test_import_discards_replaced_files(self, client, app, user, auth_headers):
        upload(client, auth_headers, [(png_bytes('navy'), 'antiga.png')])
        user_dir = app.config['UPLOAD_FOLDER'] / f'user_{user.id}'
        document = {'version': 2, 'galleryItems': [{'id': 1, 'type': 'text', 'name': 'Novo'}]}

        response = client.post('/api/backup/import', headers=auth_headers, json=document)

        assert response.status_code == 200
        assert list(user_dir.iterdir()) == []
        assert list(app.config['THUMBNAILS_FOLDER'].iterdir()) == []

    def test_reimport_keeps_file_with_same_content(self, client, app, user, auth_headers):
        upload(client, auth_headers, [(png_bytes('teal'), 'mesma.png')])
        document = client.get('/api/backup/export', headers=auth_headers).get_json()

        response = client.post('/api/backup/import', headers=auth_headers, json=document)

        assert response.status_code == 200
        files = list((app.config['UPLOAD_FOLDER'] / f'user_{user.id}').iterdir())
        assert len(files) == 1 and files[0].exists()
        item = client.get('/api/gallery', headers=auth_headers).get_json()[0]
        assert client.get(item['url'], headers=auth_headers).status_code == 200
