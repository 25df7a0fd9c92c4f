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

import logging
import threading
from http import client as httplib
from urllib import parse as urlparse

import requests

import libvcloud
from libvcloud.common.types import ConnectivityError, VCloudError
from libvcloud.http import VCloudHTTPConnection
from libvcloud.utils.misc import lowercase_keys

__all__ = [
    'Response',
    'VCloudConnection',
]

_logger = logging.getLogger(__name__)


class Response(object):
    """
    A fully read HTTP response.

    Unlike a stream the body is read once on construction so callers never
    see a half consumed response.
    """

    status = httplib.OK
    headers = {}
    body = None
    reason = None
    connection = None

    def __init__(self, response, connection):
        self.status = response.status_code
        self.reason = response.reason

        # requests keeps header names case-insensitive but we hand out a
        # plain dict
        self.headers = lowercase_keys(dict(response.headers))
        self.body = response.text or ''
        self.connection = connection

    def success(self):
        """
        Determine if our request was successful.

        :rtype: ``bool``
        :return: ``True`` or ``False``
        """
        return self.status in (httplib.OK, httplib.CREATED,
                               httplib.ACCEPTED, httplib.NO_CONTENT)

    def __repr__(self):
        return '<%s status=%s>' % (self.__class__.__name__, self.status)


class VCloudConnection(object):
    """
    Connection to a single vCloud endpoint.

    Builds the transport lazily and turns transport failures into
    :class:`ConnectivityError`.
    """
    conn_class = VCloudHTTPConnection

    responseCls = Response
    connection = None
    host = '127.0.0.1'
    port = 443
    secure = 1
    driver = None

    def __init__(self, url, proxy_url=None, verify=None, timeout=None):
        (self.host, self.port, self.secure,
         self.request_path) = self._tuple_from_url(url)
        self.proxy_url = proxy_url
        self.verify = verify
        self.timeout = timeout
        self._connect_lock = threading.Lock()

    def _tuple_from_url(self, url):
        secure = 1
        port = None
        (scheme, netloc, request_path, param,
         query, fragment) = urlparse.urlparse(url)

        if scheme not in ['http', 'https']:
            raise VCloudError('Invalid scheme: %s in url %s' % (scheme, url))

        if scheme == "http":
            secure = 0

        if ":" in netloc:
            netloc, port = netloc.rsplit(":")
            port = int(port)

        if not port:
            if scheme == "http":
                port = 80
            else:
                port = 443

        host = netloc

        return (host, port, secure, request_path)

    def connect(self):
        """
        Establish a connection with the API server.
        """
        kwargs = {'host': self.host, 'port': int(self.port),
                  'secure': self.secure, 'proxy_url': self.proxy_url,
                  'verify': self.verify, 'timeout': self.timeout}

        self.connection = self.conn_class(**kwargs)
        return self.connection

    def _user_agent(self):
        name = self.driver.name if self.driver is not None else 'vCloud'
        return 'libvcloud/%s (%s)' % (libvcloud.__version__, name)

    def request(self, url, method='GET', data=None, headers=None, auth=None):
        """
        Issue a request and return the fully read response.

        :type url: ``str``
        :param url: Absolute URL or a path relative to the endpoint host.

        :type data: ``str``
        :param data: A body of data to send with the request.

        :type headers: ``dict``
        :param headers: Extra headers to add to the request.

        :type auth: ``tuple``
        :param auth: Optional (user, password) pair for HTTP basic auth.

        :rtype: :class:`Response`
        """
        headers = dict(headers or {})
        headers.update({'User-Agent': self._user_agent()})

        connection = self.connection
        if connection is None:
            with self._connect_lock:
                connection = self.connection or self.connect()

        _logger.debug('%s %s', method, url)

        try:
            raw = connection.request(method=method, url=url, body=data,
                                     headers=headers, auth=auth)
            response = self.responseCls(response=raw, connection=self)
        except requests.exceptions.RequestException as e:
            raise ConnectivityError('Unable to reach %s: %s' % (url, e),
                                    driver=self.driver) from e

        _logger.debug('HTTP STATUS: %s', response.status)
        return response
