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
Namespace agnostic helpers for walking vCloud responses.

vCloud may qualify every element and attribute with a namespace which is
either expanded by the parser (``{uri}Disk``) or left as a literal prefix
(``ns1:Disk``) and the prefix can differ between siblings. Every lookup in
this module compares local names only, normalising each element as it is
entered.
"""

from xml.etree import ElementTree as ET

from libvcloud.common.types import MalformedResponseError

__all__ = [
    "local_name",
    "parse_xml",
    "is_named",
    "get_attr",
    "children",
    "find",
    "findall",
    "findtext",
    "iter_named",
    "escape_xml",
]


def local_name(name):
    """
    Strip ``{namespace}`` and ``prefix:`` qualifiers from a tag or attribute
    name.

    >>> local_name('{http://www.vmware.com/vcloud/v1.5}Disk')
    'Disk'
    >>> local_name('ns1:Disk')
    'Disk'
    """
    if not isinstance(name, str):
        # comments and processing instructions
        return ''
    if name[:1] == '{':
        name = name.split('}', 1)[1]
    if ':' in name:
        name = name.rsplit(':', 1)[1]
    return name


def parse_xml(body, driver=None):
    """
    Parse a response body into an element, wrapping parser failures.
    """
    try:
        return ET.XML(body)
    except (ET.ParseError, ValueError, TypeError) as e:
        raise MalformedResponseError('Failed to parse XML: %s' % (e),
                                     body=body, driver=driver)


def is_named(element, name):
    return local_name(element.tag) == name


def get_attr(element, name, default=None):
    """
    Return the value of attribute ``name`` regardless of its prefix,
    stripped of surrounding whitespace.
    """
    for key, value in element.attrib.items():
        if local_name(key) == name:
            return value.strip()
    return default


def children(element, name=None):
    return [child for child in element
            if name is None or local_name(child.tag) == name]


def findall(element, path):
    """
    Walk a ``/`` separated path of local names below ``element``.
    """
    current = [element]
    for step in path.split('/'):
        current = [child for parent in current
                   for child in children(parent, step)]
    return current


def find(element, path):
    result = findall(element, path)
    return result[0] if result else None


def findtext(element, path, no_text_value=None):
    found = find(element, path)
    if found is None or found.text is None:
        return no_text_value
    value = found.text.strip()
    if value == '':
        return no_text_value
    return value


def iter_named(element, name):
    """
    Yield every descendant (and ``element`` itself) whose local name is
    ``name``, in document order.
    """
    for node in element.iter():
        if local_name(node.tag) == name:
            yield node


# vCloud rejects these characters unescaped in names and descriptions
_XML_ESCAPES = {
    '&': '&amp;',
    '>': '&gt;',
    '<': '&lt;',
    '"': '&quot;',
    '[': '&#091;',
    ']': '&#093;',
    '!': '&#033;',
}


def escape_xml(text):
    """
    >>> escape_xml('a<b> [1]!')
    'a&lt;b&gt; &#091;1&#093;&#033;'
    """
    return ''.join(_XML_ESCAPES.get(c, c) for c in text)
