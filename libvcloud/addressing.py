# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Translation between resource identifiers and vCloud URLs.

Two id formats exist side by side. In compat mode an id keeps its type
segment (``/vdc/1234``) so it can be appended straight to the API base. In
modern mode an id is the bare trailing segment (``1234``) and the type
is supplied by the caller.
"""

from libvcloud.versions import matches

__all__ = [
    'api_base',
    'to_url',
    'to_id',
    'to_admin_url',
]


def api_base(endpoint, version):
    """
    Return the API root for ``endpoint`` under the given API version.

    >>> api_base('https://vcd.example.com', '5.1')
    'https://vcd.example.com/api'
    >>> api_base('https://vcd.example.com', '0.8')
    'https://vcd.example.com/api/v0.8'
    """
    endpoint = endpoint.rstrip('/')
    if matches(version, '1.5'):
        return endpoint + '/api'
    return endpoint + '/api/v' + version


def _is_absolute(value):
    return value.startswith('http://') or value.startswith('https://')


def to_url(base, resource_type, id=None, compat=False):
    """
    Build the URL of a resource (or of a resource collection when ``id`` is
    ``None``).

    An ``id`` which already is an absolute URL is returned unchanged.
    """
    base = base.rstrip('/')

    if id is None:
        return '%s/%s' % (base, resource_type)
    if _is_absolute(id):
        return id
    if compat:
        if not id.startswith('/'):
            id = '/' + id
        return base + id
    return '%s/%s/%s' % (base, resource_type, id)


def to_id(href, compat=False, base=None):
    """
    Turn a vCloud href back into a resource id.

    >>> to_id('https://vcd.example.com/api/vdc/1234', compat=True)
    '/vdc/1234'
    >>> to_id('https://vcd.example.com/api/vdc/1234')
    '1234'
    """
    if base and href.startswith(base):
        href = href[len(base):]

    parts = href.rstrip('/').split('/')
    if len(parts) <= 2:
        return href
    if compat:
        return '/%s/%s' % (parts[-2], parts[-1])
    return parts[-1]


def to_admin_url(endpoint, resource_type, id=None, compat=False):
    """
    Same as :func:`to_url` but under the administrative API tree.
    """
    return to_url(endpoint.rstrip('/') + '/api/admin', resource_type, id,
                  compat=compat)
