"""
Tests for UploadClient: image and document uploads and file deletion.
"""

import io

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from sitecms.exceptions import UploadError
from sitecms.uploads import UploadClient, is_allowed_document

BASE_URL = 'http://test-cms:8080'


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / 'photo.png'
    path.write_bytes(b'\x89PNG\r\n\x1a\n' + b'\x00' * 16)
    return path


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / 'Annual Report 2024.pdf'
    path.write_bytes(b'%PDF-1.4\n' + b'0' * 64)
    return path


class TestIsAllowedDocument:
    """Tests for document type checks."""

    @pytest.mark.parametrize('filename', ['a.pdf', 'a.DOC', 'a.docx', 'a.xls', 'a.xlsx'])
    def test_allowed_extensions(self, filename):
        assert is_allowed_document(filename)

    def test_allowed_by_content_type(self):
        assert is_allowed_document('blob', 'application/pdf')

    @pytest.mark.parametrize('filename', ['a.png', 'a.exe', 'a.txt', 'noext'])
    def test_rejected(self, filename):
        assert not is_allowed_document(filename)


class TestUploadImage:
    """Tests for UploadClient.upload_image."""

    def test_success(self, upload_client, mock_session, make_response, image_file):
        mock_session.post.return_value = make_response(json_data={
            'success': True,
            'imageUrl': '/uploads/images/photo-1.png',
        })

        url = upload_client.upload_image(image_file)

        assert url == f"{BASE_URL}/uploads/images/photo-1.png"
        args, kwargs = mock_session.post.call_args
        assert args[0] == f"{BASE_URL}/api/upload/image"
        filename, _, content_type = kwargs['files']['image']
        assert filename == 'photo.png'
        assert content_type == 'image/png'
        assert kwargs['timeout'] == 5

    def test_file_object(self, upload_client, mock_session, make_response):
        mock_session.post.return_value = make_response(json_data={
            'success': True,
            'imageUrl': 'https://cdn.example.com/a.png',
        })

        url = upload_client.upload_image(io.BytesIO(b'data'))
        assert url == 'https://cdn.example.com/a.png'

    def test_rejected_by_cms(self, upload_client, mock_session, make_response, image_file):
        mock_session.post.return_value = make_response(
            status_code=413, json_data={'error': 'File too large'}, reason='Payload Too Large',
        )

        with pytest.raises(UploadError) as exc_info:
            upload_client.upload_image(image_file)
        assert exc_info.value.message == 'Upload failed: File too large'

    def test_missing_url_in_response(self, upload_client, mock_session, make_response, image_file):
        mock_session.post.return_value = make_response(json_data={'success': False, 'error': 'Bad image'})

        with pytest.raises(UploadError) as exc_info:
            upload_client.upload_image(image_file)
        assert exc_info.value.message == 'Bad image'

    def test_network_error(self, upload_client, mock_session, image_file):
        mock_session.post.side_effect = RequestsConnectionError("refused")

        with pytest.raises(UploadError) as exc_info:
            upload_client.upload_image(image_file)
        assert exc_info.value.message.startswith('Upload failed:')

    def test_missing_path(self, upload_client, mock_session, tmp_path):
        with pytest.raises(UploadError) as exc_info:
            upload_client.upload_image(tmp_path / 'missing.png')

        assert exc_info.value.message.startswith('Upload failed:')
        assert exc_info.value.details == {'filename': 'missing.png'}
        mock_session.post.assert_not_called()


class TestUploadFile:
    """Tests for UploadClient.upload_file."""

    def test_success(self, upload_client, mock_session, make_response, pdf_file):
        mock_session.post.return_value = make_response(json_data={
            'success': True,
            'fileUrl': '/uploads/documents/annual-report-2024.pdf',
        })

        url = upload_client.upload_file(pdf_file)

        assert url == f"{BASE_URL}/uploads/documents/annual-report-2024.pdf"
        args, kwargs = mock_session.post.call_args
        assert args[0] == f"{BASE_URL}/api/upload/file"
        assert kwargs['files']['file'][2] == 'application/pdf'

    def test_rejects_wrong_type(self, upload_client, mock_session, image_file):
        with pytest.raises(UploadError) as exc_info:
            upload_client.upload_file(image_file)

        assert exc_info.value.message == "Please upload a valid document file (PDF, DOC, DOCX, XLS, XLSX)"
        mock_session.post.assert_not_called()

    def test_rejects_large_file(self, upload_client, mock_session, tmp_path):
        path = tmp_path / 'big.pdf'
        with open(path, 'wb') as f:
            f.truncate(10 * 1024 * 1024 + 1)

        with pytest.raises(UploadError) as exc_info:
            upload_client.upload_file(path)

        assert exc_info.value.message == "File size is too large. Maximum size is 10MB."
        mock_session.post.assert_not_called()

    def test_missing_path(self, upload_client, mock_session, tmp_path):
        with pytest.raises(UploadError) as exc_info:
            upload_client.upload_file(str(tmp_path / 'missing.pdf'))

        assert exc_info.value.message.startswith('Upload failed:')
        mock_session.post.assert_not_called()

    def test_file_at_limit_accepted(self, upload_client, mock_session, make_response, tmp_path):
        path = tmp_path / 'exact.pdf'
        with open(path, 'wb') as f:
            f.truncate(10 * 1024 * 1024)
        mock_session.post.return_value = make_response(json_data={
            'success': True,
            'fileUrl': '/uploads/documents/exact.pdf',
        })

        assert upload_client.upload_file(path).endswith('/uploads/documents/exact.pdf')


class TestDeleteFile:
    """Tests for UploadClient.delete_file."""

    def test_success(self, upload_client, mock_session, make_response, messages):
        mock_session.delete.return_value = make_response(json_data={'success': True})

        assert upload_client.delete_file('http://host/uploads/documents/file-123.pdf?x=1') is True

        mock_session.delete.assert_called_once_with(
            f"{BASE_URL}/api/upload/documents/file-123.pdf",
            headers={'Content-Type': 'application/json'},
            timeout=5,
        )
        assert messages == []

    def test_own_base_url(self, upload_client, mock_session, make_response):
        mock_session.delete.return_value = make_response(json_data={'success': True})

        assert upload_client.delete_file(f"{BASE_URL}/uploads/images/a%20b.png") is True
        assert mock_session.delete.call_args[0][0] == f"{BASE_URL}/api/upload/images/a%20b.png"

    def test_malformed_url_no_request(self, upload_client, mock_session, messages):
        assert upload_client.delete_file('http://host/static/logo.png') is False

        mock_session.delete.assert_not_called()
        assert messages == ["Invalid file URL format. Cannot delete this file."]

    def test_not_found(self, upload_client, mock_session, make_response, messages):
        mock_session.delete.return_value = make_response(
            status_code=404, json_data={'error': 'File not found'}, reason='Not Found',
        )

        assert upload_client.delete_file('/uploads/documents/gone.pdf') is False
        assert messages == ['File not found']

    def test_unsuccessful_body(self, upload_client, mock_session, make_response, messages):
        mock_session.delete.return_value = make_response(json_data={'success': False})

        assert upload_client.delete_file('/uploads/documents/a.pdf') is False
        assert messages == ['Delete failed: Unknown error']

    def test_network_error(self, upload_client, mock_session, messages):
        mock_session.delete.side_effect = RequestsConnectionError("refused")

        assert upload_client.delete_file('/uploads/documents/a.pdf') is False
        assert messages[0].startswith('Error deleting file:')

    def test_without_message_callback(self, mock_session):
        client = UploadClient(BASE_URL, session=mock_session)
        assert client.delete_file('/static/a.png') is False
