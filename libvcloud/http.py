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
requests based transport with proxy and certificate verification support,
depending on libvcloud.security settings.
"""

import os
from urllib import parse as urlparse

import requests

import libvcloud.security

__all__ = [
    'VCloudBaseConnection',
    'VCloudHTTPConnection'
]

ALLOW_REDIRECTS = 1

DEFAULT_TIMEOUT = 60

HTTP_PROXY_ENV_VARIABLE_NAME = 'http_proxy'
HTTPS_PROXY_ENV_VARIABLE_NAME = 'https_proxy'


class VCloudBaseConnection(object):
    """
    Base connection class to inherit from.

    Note: This class should not be instantiated directly.
    """

    session = None

    proxy_scheme = None
    proxy_host = None
    proxy_port = None

    proxy_username = None
    proxy_password = None

    http_proxy_used = False

    ca_cert = None
    verify = True

    def __init__(self):
        self.session = requests.Session()

    def set_http_proxy(self, proxy_url):
        """
        Set a HTTP proxy which will be used with this connection.

        :param proxy_url: Proxy URL (e.g. http://<hostname>:<port> without
                          authentication and
                          http://<username>:<password>@<hostname>:<port> for
                          basic auth authentication information.
        :type proxy_url: ``str``
        """
        (scheme, host, port, username,
         password) = self._parse_proxy_url(proxy_url=proxy_url)

        self.proxy_scheme = scheme
        self.proxy_host = host
        self.proxy_port = port
        self.proxy_username = username
        self.proxy_password = password
        self.http_proxy_used = True

        self.session.proxies = {
            'http': proxy_url,
            'https': proxy_url,
        }

    def _parse_proxy_url(self, proxy_url):
        """
        Parse and validate a proxy URL.

        :param proxy_url: Proxy URL (e.g. http://hostname:3128)
        :type proxy_url: ``str``

        :rtype: ``tuple`` (``scheme``, ``hostname``, ``port``,
                ``username``, ``password``)
        """
        parsed = urlparse.urlparse(proxy_url)

        if parsed.scheme not in ('http', 'https'):
            raise ValueError('Only http and https proxies are supported')

        if not parsed.hostname or not parsed.port:
            raise ValueError('proxy_url must be in the following format: '
                             '<scheme>://<proxy host>:<proxy port>')

        netloc = parsed.netloc

        if '@' in netloc:
            username_password = netloc.split('@', 1)[0]
            split = username_password.split(':', 1)

            if len(split) < 2:
                raise ValueError('URL is in an invalid format')

            proxy_username, proxy_password = split[0], split[1]
        else:
            proxy_username = None
            proxy_password = None

        return (parsed.scheme, parsed.hostname, parsed.port, proxy_username,
                proxy_password)

    def _setup_verify(self, verify=None):
        if verify is None:
            verify = libvcloud.security.VERIFY_SSL_CERT
        self.verify = verify

    def _setup_ca_cert(self, ca_cert=None):
        if self.verify is False:
            self.ca_cert = None
        else:
            self.ca_cert = ca_cert or libvcloud.security.CA_CERTS_PATH


class VCloudHTTPConnection(VCloudBaseConnection):
    timeout = None
    host = None

    def __init__(self, host, port, secure=None, **kwargs):
        scheme = 'https' if secure is not None and secure else 'http'
        self.host = '{0}://{1}{2}'.format(
            'https' if port == 443 else scheme,
            host,
            ":{0}".format(port) if port not in (80, 443) else ""
        )

        # NOTE: We always only use a single proxy (either HTTP or HTTPS)
        https_proxy_url_env = os.environ.get(HTTPS_PROXY_ENV_VARIABLE_NAME,
                                             None)
        http_proxy_url_env = os.environ.get(HTTP_PROXY_ENV_VARIABLE_NAME,
                                            https_proxy_url_env)

        # Connection argument has precedence over environment variables
        proxy_url = kwargs.pop('proxy_url', None) or http_proxy_url_env

        self._setup_verify(kwargs.pop('verify', None))
        self._setup_ca_cert(kwargs.pop('ca_cert', None))

        VCloudBaseConnection.__init__(self)

        self.timeout = kwargs.pop('timeout', None) or DEFAULT_TIMEOUT

        if proxy_url:
            self.set_http_proxy(proxy_url=proxy_url)

    @property
    def verification(self):
        """
        The option for SSL verification given to underlying requests
        """
        return self.ca_cert if self.ca_cert is not None else self.verify

    def request(self, method, url, body=None, headers=None, auth=None):
        """
        Issue a request and return its ``requests.Response``.

        The response is handed back to the caller only, so one connection
        can serve several threads.
        """
        url = urlparse.urljoin(self.host, url)
        headers = self._normalize_headers(headers=headers)

        return self.session.request(
            method=method.lower(),
            url=url,
            data=body,
            headers=headers,
            auth=auth,
            allow_redirects=ALLOW_REDIRECTS,
            timeout=self.timeout,
            verify=self.verification
        )

    def _normalize_headers(self, headers):
        headers = headers or {}

        # all headers should be strings
        for key, value in headers.items():
            if isinstance(value, (int, float)):
                headers[key] = str(value)

        return headers
