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

from shlex import quote as pquote
from xml.dom.minidom import parseString

import os

from libvcloud.http import VCloudHTTPConnection
from libvcloud.utils.misc import lowercase_keys

__all__ = [
    'LoggingConnection',
    'MASKED_HEADERS',
]

# Credentials never end up in the log
MASKED_HEADERS = ('authorization', 'x-vcloud-authorization')

MASK = '*****'


def _mask_headers(headers):
    return dict((k, MASK if k.lower() in MASKED_HEADERS else v)
                for k, v in headers.items())


class LoggingConnection(VCloudHTTPConnection):
    """
    Debug class to log all HTTP(s) requests as they could be made
    with the curl command.

    :cvar log: file-like object that logs entries are written to.
    """

    log = None

    def _log_response(self, r):
        rv = "# -------- begin %d:%d response ----------\n" % (id(self), id(r))
        ht = "HTTP/1.1 %s %s\r\n" % (r.status_code, r.reason)
        body = r.text or ''

        headers = _mask_headers(dict(r.headers))
        for name, value in headers.items():
            ht += "%s: %s\r\n" % (name.title(), value)
        ht += "\r\n"

        content_type = lowercase_keys(headers).get('content-type', '')

        pretty_print = os.environ.get('LIBVCLOUD_DEBUG_PRETTY_PRINT_RESPONSE',
                                      False)

        if pretty_print and 'xml' in content_type:
            try:
                elem = parseString(body)
                body = elem.toprettyxml()
            except Exception:
                # Invalid XML
                pass

        ht += body

        rv += ht
        rv += ("\n# -------- end %d:%d response ----------\n"
               % (id(self), id(r)))

        return rv

    def _log_curl(self, method, url, body, headers, auth=None):
        cmd = ["curl"]

        if self.http_proxy_used:
            proxy_url = '%s://%s:%s' % (self.proxy_scheme,
                                        self.proxy_host,
                                        self.proxy_port)
            cmd.extend(['--proxy', pquote(proxy_url)])

        cmd.extend(["-i", "-X", pquote(method)])

        if auth is not None:
            cmd.extend(["-u", pquote("%s:%s" % (auth[0], MASK))])

        for name, value in _mask_headers(headers).items():
            cmd.extend(["-H", pquote("%s: %s" % (name, value))])

        if body is not None and len(body) > 0:
            if isinstance(body, (bytearray, bytes)):
                body = body.decode('utf-8')

            cmd.extend(["--data-binary", pquote(body)])

        cmd.extend(["--compress"])
        if url.startswith('http://') or url.startswith('https://'):
            cmd.extend([pquote(url)])
        else:
            cmd.extend([pquote("%s%s" % (self.host, url))])
        return " ".join(cmd)

    def request(self, method, url, body=None, headers=None, auth=None):
        headers = headers or {}
        headers.update({'X-VC-Request-ID': str(id(self))})
        if self.log is not None:
            pre = "# -------- begin %d request ----------\n" % id(self)
            self.log.write(pre +
                           self._log_curl(method, url, body, headers, auth) +
                           "\n")
            self.log.flush()
        response = VCloudHTTPConnection.request(self, method, url, body,
                                                headers, auth)
        if self.log is not None:
            self.log.write(self._log_response(response) + "\n")
            self.log.flush()
        return response
