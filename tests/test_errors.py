from __future__ import annotations

from issuemirror.errors import (
    STAGE_COMMENT_PAGE,
    ConfigError,
    MirrorError,
    MirrorFilesystemError,
    SourceError,
    classify_error,
    redact,
)


def test_taxonomy_shares_base():
    for exc in (
        ConfigError('bad'),
        SourceError('down', stage=STAGE_COMMENT_PAGE, issue_number=3),
        MirrorFilesystemError('denied', operation='write', path='/x'),
    ):
        assert isinstance(exc, MirrorError)


def test_classify_rate_limit():
    info = classify_error(RuntimeError('API Rate Limit Exceeded'))
    assert info.category == 'github.rate_limit'
    assert info.transient is True


def test_classify_abuse():
    info = classify_error(RuntimeError('Abuse detection triggered'))
    assert info.category == 'github.abuse'
    assert info.transient is True


def test_classify_network():
    info = classify_error(RuntimeError('Connection reset by peer'))
    assert info.category == 'network'
    assert info.transient is True


def test_classify_config():
    info = classify_error(ConfigError('page size must be positive'))
    assert info.category == 'config'
    assert info.transient is False


def test_classify_source_keeps_stage():
    info = classify_error(SourceError('HTTP 502', stage=STAGE_COMMENT_PAGE, issue_number=7))
    assert info.category == 'source'
    assert info.details == {'stage': 'comment_page', 'issue_number': 7}
    assert info.original_type == 'SourceError'


def test_classify_filesystem():
    info = classify_error(MirrorFilesystemError('permission denied', operation='symlink', path='/m/1.md'))
    assert info.category == 'filesystem'
    assert info.details == {'operation': 'symlink', 'path': '/m/1.md'}


def test_classify_generic():
    info = classify_error(ValueError('Some other problem'))
    assert info.category == 'generic'


def test_redact_tokens():
    sample = (
        'Token ghp_ABCDEFGHIJKLMNOPQRSTUVWX plus github_pat_1234567890abcdefghijkl '
        'and header Bearer abcdefgh12345678'
    )
    out = redact(sample)
    assert 'ghp_' not in out
    assert 'github_pat_' not in out
    assert 'abcdefgh12345678' not in out
    assert '<redacted>' in out


def test_classify_redacts_message():
    info = classify_error(RuntimeError('auth failed for ghp_ABCDEFGHIJKLMNOPQRSTUVWX'))
    assert 'ghp_' not in info.message
