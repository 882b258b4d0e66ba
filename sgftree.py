#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# sgftree.py (Smart Game Format scanner, parser & game tree library)
# Copyright © 2000-2021 David John Goodger (goodger@python.org)
#
# This library is free software; you can redistribute it and/or modify it
# under the terms of the GNU Lesser General Public License as published by the
# Free Software Foundation; either version 2 of the License, or (at your
# option) any later version.
#
# This library is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranty of MERCHANTABILITY or
# FITNESS FOR A PARTICULAR PURPOSE.  See the GNU Lesser General Public License
# for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# (lgpl.txt) along with this library; if not, write to the Free Software
# Foundation, Inc., 59 Temple Place, Suite 330, Boston, MA  02111-1307  USA
# The license is currently available on the Internet at:
#     http://www.gnu.org/copyleft/lesser.html

"""
=============================================================
 Smart Game Format Scanner, Parser & Game Tree Library: sgftree
=============================================================

This library reads SGF, the Smart Game Format (https://www.red-bean.com/sgf/),
into an immutable tree of game records, and writes it back out. SGF is a text
only, tree based file format designed to store game records of board games
for two players, most commonly for the game of Go.

Processing happens in three stages:

1. The `Scanner` turns the complete SGF text (a `str`) into a list of
   positioned `Token` objects.

2. The `Parser` consumes those tokens, one method per grammar production,
   and builds a `Collection` of one or more `GameTree` objects. Each
   `GameTree` holds a `Sequence` of one or more `Node` objects and zero or
   more branch `GameTree` objects (variations). Each `Node` holds an ordered
   tuple of `Property` objects, each an uppercase identifier with one or more
   values.

3. The tree objects are immutable. Transforms (`strip()`, `anonymize()`,
   `map_properties()`, `normalize()`, `trunk()`) return new trees.

The default representation (using ``str()``/``bytes()`` or ``print()``) of
each class of tree objects is canonical SGF: no whitespace between
structural elements. Property values are stored exactly as written between
their brackets, escapes included, so canonical output re-parses to an equal
tree.

The parser checks structural well-formedness only. It does not know which
property identifiers exist, nor what their values mean.

Command-line interface: `NormalizerCLI` (installed as ``sgftree``).
"""


import sys
import warnings
import argparse
import datetime
import textwrap
import collections


TEXT_ENCODING = 'UTF-8'
"""Encoding used for all bytes input & output."""

PRETTY_INDENT_SPACES = 2
"""Per-level indent for pretty-formatted output."""

MAX_INTEGER = 2 ** 64 - 1
"""Largest integer literal accepted by the `Scanner`."""

PERSONAL_PROPERTY_IDS = ('PB', 'PW', 'BT', 'WT', 'US', 'AN')
"""IDs of properties carrying personally identifying values (player names &
teams, the user who entered the game, the annotator). Blanked by
`Collection.anonymize()`."""


class Error(Exception):

    """
    Base class for sgftree exceptions.

    Instance attributes:

    - self.message : string -- What went wrong.
    - self.position : `Position` or `None` -- Where it went wrong.
    """

    kind = 'error'
    """Prefix used when rendering a positioned error."""

    def __init__(self, message='', position=None):
        self.message = message
        self.position = position
        if position is None:
            text = message
        else:
            text = f'{self.kind} at {position}: {message}'
        super().__init__(text)

# Scanning Exceptions

class ScanError(Error):
    """Raised by `Scanner.scan()`."""
    kind = 'scan_error'

# Parsing Exceptions

class ParseError(Error):
    """Base class for parsing exceptions, and raised by `Parser()`."""
    kind = 'parse_error'

class EndOfDataParseError(ParseError):
    """Raised by `Parser` methods when the data ends inside a construct."""
    pass

class TreeParseError(ParseError):
    """Raised by `Parser.parse()`, `Parser.parse_game_tree()`."""
    pass

class SequenceParseError(ParseError):
    """Raised by `Parser.parse_sequence()`."""
    pass

class NodePropertyParseError(ParseError):
    """Raised by `Parser.parse_property()`, `Parser.parse_property_id()`."""
    pass

class PropertyValueParseError(ParseError):
    """Raised by `Parser.parse_property_value()`."""
    pass

# Tree Construction Exceptions

class TreeConstructionError(Error):
    """Raised by tree class constructors when an invariant is violated."""
    pass


class Position(collections.namedtuple('Position', 'row col')):

    """
    A location in the SGF text. Rows count from 1, columns from 0.
    Renders as ``(row:col)``.
    """

    __slots__ = ()

    def __str__(self):
        return f'({self.row}:{self.col})'


# Tokens

class Token:

    """
    Base class of the lexical token variants produced by `Scanner`.

    Instance attributes:

    - self.text : string -- The source text of the token.
    - self.position : `Position` -- Where the token is, or `None`.

    Tokens are immutable. Two tokens are equal when they are the same variant
    with the same text; positions are ignored. ``str(token)`` is the text the
    token contributes to a property value.
    """

    __slots__ = ('text', 'position')

    def __init__(self, text='', position=None):
        object.__setattr__(self, 'text', text)
        object.__setattr__(self, 'position', position)

    def __setattr__(self, name, value):
        raise AttributeError(
            f'{self.__class__.__name__} tokens are immutable')

    def __eq__(self, other):
        if not isinstance(other, Token):
            return NotImplemented
        return type(self) is type(other) and self.text == other.text

    def __hash__(self):
        return hash((self.__class__, self.text))

    def __str__(self):
        return self.text

    def __repr__(self):
        if self.position is None:
            return '{}({!r})'.format(self.__class__.__name__, self.text)
        return '{}({!r}, {})'.format(
            self.__class__.__name__, self.text, self.position)


class EndOfInput(Token):
    """Past the end of the data. Never stored in a token list."""
    __slots__ = ()

class Whitespace(Token):
    """A run of spaces, tabs & carriage returns."""
    __slots__ = ()

class Newline(Token):
    """A run of line feeds, positioned just after the run."""
    __slots__ = ()

class Identifier(Token):
    """A name containing anything other than uppercase letters."""
    __slots__ = ()

class UcIdentifier(Token):
    """A name consisting only of uppercase ASCII letters (a property ID)."""
    __slots__ = ()

class OpenParen(Token):
    __slots__ = ()

class CloseParen(Token):
    __slots__ = ()

class OpenBracket(Token):
    __slots__ = ()

class CloseBracket(Token):
    __slots__ = ()

class Semicolon(Token):
    __slots__ = ()


class Number(Token):

    """
    Base class of numeric literals. `self.value` holds the converted number;
    `self.text` keeps the digits as written (so "007" stays "007" in values).
    """

    __slots__ = ('value',)
    converter = None

    def __init__(self, text='', position=None, value=None):
        super().__init__(text, position)
        if value is None:
            value = self.converter(text)
        object.__setattr__(self, 'value', value)


class Integer(Number):
    """An unsigned integer literal: a run of decimal digits."""
    __slots__ = ()
    converter = int

class Float(Number):
    """A floating point literal. Reserved: the scanner does not produce it."""
    __slots__ = ()
    converter = float


class Escaped(Token):

    """
    The single character following a backslash. `self.text` holds the
    character alone; ``str()`` restores the backslash.
    """

    __slots__ = ()

    def __str__(self):
        return '\\' + self.text


class AsciiChar(Token):
    """A single printable ASCII character with no other meaning."""
    __slots__ = ()

class CodePoint(Token):
    """A single non-ASCII (or control) code point, passed through verbatim."""
    __slots__ = ()


def is_digit(char):
    return '0' <= char <= '9'

def is_identifier_start(char):
    return 'a' <= char <= 'z' or 'A' <= char <= 'Z' or char == '_'

def is_identifier_char(char):
    return is_digit(char) or is_identifier_start(char)

def is_property_id(text):
    """Return True iff `text` is a non-empty run of uppercase ASCII letters."""
    return bool(text) and all('A' <= char <= 'Z' for char in text)


class Scanner:

    """
    Lexical scanner for SGF text. `Scanner.scan()` returns a list of `Token`
    objects for the entire data, or raises `ScanError`.
    """

    whitespace_chars = frozenset(' \t\r')
    """Characters gathered into `Whitespace` tokens. Line feeds are separate
    (see `Newline`)."""

    symbol_tokens = {
        '(': OpenParen,
        ')': CloseParen,
        '[': OpenBracket,
        ']': CloseBracket,
        ';': Semicolon,
        }
    """Mapping of structural characters to their token classes."""

    def __init__(self, data):
        self.data = data
        """The complete SGF text (`str`)."""

        self.datalen = len(data)
        """Length of `self.data`."""

        self.index = 0
        """Current scanning position in `self.data`."""

        self.row = 1
        self.col = 0

    @property
    def position(self):
        """The `Position` of the next character to be read."""
        return Position(self.row, self.col)

    def peek(self, n=0):
        """
        Return the character `n` places past the current one, without
        consuming anything. Past the end of the data, return ''.
        """
        index = self.index + n
        if index < self.datalen:
            return self.data[index]
        return ''

    def read(self):
        """Consume & return the current character ('' past the end)."""
        if self.index >= self.datalen:
            return ''
        char = self.data[self.index]
        self.index += 1
        if char == '\n':
            self.row += 1
            self.col = 0
        else:
            self.col += 1
        return char

    def read_while(self, predicate):
        """Consume & return the longest run of characters matching
        `predicate`."""
        start = self.index
        while self.peek() and predicate(self.peek()):
            self.read()
        return self.data[start:self.index]

    def scan(self):
        """
        Scan the entire data. Return a list of `Token` objects (without a
        terminating `EndOfInput`).

        Raise `ScanError` if the data cannot be scanned; no tokens are
        returned in that case.
        """
        tokens = []
        while True:
            token = self.scan_token()
            if isinstance(token, EndOfInput):
                return tokens
            tokens.append(token)

    def scan_token(self):
        """Scan & return the next `Token`."""
        char = self.peek()
        if not char:
            return EndOfInput()
        elif char in self.whitespace_chars:
            return self.scan_whitespace()
        elif char == '\n':
            return self.scan_newlines()
        elif char == '\\':
            return self.scan_escaped()
        elif char in self.symbol_tokens:
            return self.scan_single(self.symbol_tokens[char])
        elif is_digit(char):
            return self.scan_integer()
        elif is_identifier_start(char):
            return self.scan_identifier()
        elif ' ' <= char <= '~':
            return self.scan_single(AsciiChar)
        else:
            return self.scan_single(CodePoint)

    def scan_single(self, token_class):
        position = self.position
        return token_class(self.read(), position)

    def scan_whitespace(self):
        position = self.position
        return Whitespace(
            self.read_while(self.whitespace_chars.__contains__), position)

    def scan_newlines(self):
        text = self.read_while(lambda char: char == '\n')
        return Newline(text, self.position)

    def scan_escaped(self):
        """
        Consume a backslash & the character following it, whatever it is
        (including "]" and "\\"), and return it as an `Escaped` token.
        """
        position = self.position
        self.read()
        char = self.read()
        if not char:
            raise ScanError('backslash at end of data', position)
        return Escaped(char, position)

    def scan_integer(self):
        position = self.position
        text = self.read_while(is_digit)
        digits = text.lstrip('0') or '0'
        # Length check first: int() refuses very long digit strings.
        if (len(digits) > len(str(MAX_INTEGER))
                or int(digits) > MAX_INTEGER):
            raise ScanError(
                f'integer literal "{text}" is too large '
                f'(maximum {MAX_INTEGER})', position)
        return Integer(text, position, int(digits))

    def scan_identifier(self):
        position = self.position
        text = self.read_while(is_identifier_char)
        if is_property_id(text):
            return UcIdentifier(text, position)
        return Identifier(text, position)


class TreeMixin:

    """
    Operations shared by all tree classes. Subclasses implement
    `map_properties()` and ``__str__()``.
    """

    __slots__ = ()

    def map_properties(self, function):
        """
        Return a new tree of the same shape, with every `Property` replaced
        by ``function(property)``.
        """
        raise NotImplementedError

    def strip(self, *property_ids):
        """
        Return a new tree in which every property with one of the given
        `property_ids` has a single empty value. Other properties are copied
        unchanged.
        """
        return self.map_properties(property_blanker(property_ids))

    def __eq__(self, other):
        """Equal iff `other` is the same tree class with equal contents."""
        if self.__class__ is not other.__class__:
            return False
        return tuple.__eq__(self, other)

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((self.__class__.__name__, tuple.__hash__(self)))

    def __bytes__(self):
        """SGF bytes representation."""
        return bytes(str(self), TEXT_ENCODING)


def property_blanker(property_ids):
    """
    Return a function for `TreeMixin.map_properties()` that blanks the values
    of properties with IDs in `property_ids` and copies all others.
    """
    property_ids = frozenset(property_ids)

    def blank(prop):
        if prop.ident in property_ids:
            return Property(prop.ident, [''])
        return Property(prop.ident, prop.values)

    return blank


class Property(TreeMixin, collections.namedtuple('Property', 'ident values')):

    """
    An SGF property: an uppercase identifier and a tuple of one or more value
    strings. Values are kept exactly as written between "[" and "]",
    including backslash escapes.
    """

    __slots__ = ()

    def __new__(cls, ident, values):
        if isinstance(values, str):
            values = (values,)
        else:
            values = tuple(values)
        if not is_property_id(ident):
            raise TreeConstructionError(
                f'Property ID must be uppercase letters, got {ident!r}.')
        if not values:
            raise TreeConstructionError(
                f'Property "{ident}" must have at least one value.')
        for value in values:
            if not isinstance(value, str):
                raise TreeConstructionError(
                    f'Property "{ident}" values must be strings, '
                    f'got {type(value)}.')
        return super().__new__(cls, ident, values)

    def __str__(self):
        return self.ident + ''.join(f'[{value}]' for value in self.values)

    def map_properties(self, function):
        return function(self)


class Node(TreeMixin, tuple):

    """
    An SGF node (one move or play, or initial setup): an ordered tuple of
    `Property` objects, possibly empty. Identifiers may repeat.

    Example: Let ``node`` be a `Node` parsed from ';B[aa]LB[bb:A][cc:B]':

    * node.get('B')  =>  ('aa',)
    * node.get('LB') =>  ('bb:A', 'cc:B')
    """

    __slots__ = ()

    def __new__(cls, properties=()):
        properties = tuple(properties)
        for prop in properties:
            if not isinstance(prop, Property):
                raise TreeConstructionError(
                    f'Unable to construct a Node from {type(prop)}.')
        return super().__new__(cls, properties)

    def __str__(self):
        """Return an SGF text representation of this `Node`."""
        return ';' + ''.join(str(prop) for prop in self)

    def pretty(self, indent=0):
        return str(self)

    def __repr__(self):
        items = []
        for prop in self:
            if len(prop.values) == 1:
                value = prop.values[0]
            else:
                value = list(prop.values)
            items.append('{}={!r}'.format(prop.ident, value))
        return '{}({})'.format(self.__class__.__name__, ', '.join(items))

    def get(self, property_id, default=None):
        """Return the values of the first `property_id` property, or
        `default`."""
        for prop in self:
            if prop.ident == property_id:
                return prop.values
        return default

    def property_ids(self):
        return [prop.ident for prop in self]

    def map_properties(self, function):
        return self.__class__(prop.map_properties(function) for prop in self)


class Sequence(TreeMixin, tuple):

    """
    A non-empty tuple of `Node` objects: the plays of a `GameTree` prior to
    any branches.
    """

    __slots__ = ()

    def __new__(cls, nodes):
        nodes = tuple(nodes)
        if not nodes:
            raise TreeConstructionError('A Sequence needs at least one Node.')
        for node in nodes:
            if not isinstance(node, Node):
                raise TreeConstructionError(
                    f'Unable to construct a Sequence from {type(node)}.')
        return super().__new__(cls, nodes)

    def __str__(self):
        return ''.join(str(node) for node in self)

    def __repr__(self):
        more = ', ...' if len(self) > 1 else ''
        return '{}({!r}{})'.format(self.__class__.__name__, self[0], more)

    def map_properties(self, function):
        return self.__class__(node.map_properties(function) for node in self)


class GameTree(TreeMixin,
               collections.namedtuple('GameTree', 'sequence branches')):

    """
    An SGF game tree: a `Sequence` of nodes (game plays) and optional
    branches (game variations).

    Instance attributes:

    self.sequence : `Sequence`
       Game tree 'trunk' (main line of game or branch), all plays prior to any
       branches.

    self.branches : tuple of `GameTree`
       Variations of a game. `self.branches[0]` is the main line of the game
       (trunk of the tree). Empty for a leaf variation.
    """

    __slots__ = ()

    def __new__(cls, sequence, branches=()):
        if not isinstance(sequence, Sequence):
            sequence = Sequence(sequence)
        branches = tuple(branches)
        for branch in branches:
            if not isinstance(branch, GameTree):
                raise TreeConstructionError(
                    f'Unable to construct a GameTree branch from '
                    f'{type(branch)}.')
        return super().__new__(cls, sequence, branches)

    # Traversals below use explicit stacks, not recursion: variations may
    # nest deeper than the interpreter's recursion limit.

    def __str__(self):
        """Return an SGF representation of this `GameTree`."""
        parts = []
        pending = [self]
        while pending:
            item = pending.pop()
            if isinstance(item, str):
                parts.append(item)
                continue
            parts.append('(')
            parts.append(str(item.sequence))
            pending.append(')')
            pending.extend(reversed(item.branches))
        return ''.join(parts)

    def pretty(self, indent=0):
        """
        Return a pretty-formatted SGF representation of this `GameTree`, one
        node per line, each variation indented one level further.
        """
        lines = []
        pending = [(self, indent)]
        while pending:
            item, level = pending.pop()
            spaces = ' ' * level * PRETTY_INDENT_SPACES
            if isinstance(item, str):
                lines.append(spaces + item)
                continue
            lines.append(spaces + '(')
            inner = ' ' * (level + 1) * PRETTY_INDENT_SPACES
            lines.extend(inner + node.pretty() for node in item.sequence)
            pending.append((')', level))
            pending.extend(
                (branch, level + 1) for branch in reversed(item.branches))
        return '\n'.join(lines)

    def __repr__(self):
        branches = ''
        if self.branches:
            first = self.branches[0]
            more = ', branches=[...]' if first.branches else ''
            branches = ', branches=[{}({!r}{}), ...]'.format(
                first.__class__.__name__, first.sequence, more)
        return '{}({!r}{})'.format(
            self.__class__.__name__, self.sequence, branches)

    def __eq__(self, other):
        pending = [(self, other)]
        while pending:
            left, right = pending.pop()
            if (  left.__class__ is not right.__class__
                  or left.sequence != right.sequence
                  or len(left.branches) != len(right.branches)):
                return False
            pending.extend(zip(left.branches, right.branches))
        return True

    def __hash__(self):
        return hash((self.__class__.__name__, str(self)))

    def rebuild(self, build):
        """
        Return the result of ``build(gametree, new_branches)`` for this
        `GameTree`, where `new_branches` holds the already-built results for
        each branch (children are built before their parents).
        """
        stack = [(self, iter(self.branches), [])]
        while True:
            gametree, branches, built = stack[-1]
            branch = next(branches, None)
            if branch is not None:
                stack.append((branch, iter(branch.branches), []))
                continue
            stack.pop()
            result = build(gametree, built)
            if not stack:
                return result
            stack[-1][2].append(result)

    def trunk(self):
        """
        Return the main line of the game (nodes and variation A, recursively)
        as a new `GameTree` without branches.
        """
        nodes = list(self.sequence)
        branches = self.branches
        while branches:
            nodes.extend(branches[0].sequence)
            branches = branches[0].branches
        return self.__class__(nodes)

    def normalize(self):
        """
        Return a new `GameTree` in which every game tree with exactly one
        branch has been combined with that branch.
        """
        def combine(gametree, branches):
            if len(branches) == 1:
                return gametree.__class__(
                    gametree.sequence + branches[0].sequence,
                    branches[0].branches)
            return gametree.__class__(gametree.sequence, branches)

        return self.rebuild(combine)

    def map_properties(self, function):
        return self.rebuild(
            lambda gametree, branches: gametree.__class__(
                gametree.sequence.map_properties(function), branches))


class Collection(TreeMixin, tuple):

    """
    A `Collection` is a tuple of one or more `GameTree` objects: all the games
    of one SGF data instance.

    Instance attributes:

    - self.path : string or `None` -- Source path, as given to
      `Collection.load()`. Read-only, like the rest of the tree; carried over
      by transforms. Not part of equality.
    """

    def __new__(cls, gametrees, path=None):
        gametrees = tuple(gametrees)
        if not gametrees:
            raise TreeConstructionError(
                'A Collection needs at least one GameTree.')
        for gametree in gametrees:
            if not isinstance(gametree, GameTree):
                raise TreeConstructionError(
                    f'Unable to construct a Collection from {type(gametree)}.')
        collection = super().__new__(cls, gametrees)
        # tuple subclasses cannot declare non-empty __slots__:
        object.__setattr__(collection, 'path', path)
        return collection

    def __setattr__(self, name, value):
        raise AttributeError(
            f'{self.__class__.__name__} objects are immutable')

    def __delattr__(self, name):
        raise AttributeError(
            f'{self.__class__.__name__} objects are immutable')

    def __str__(self):
        """SGF text representation, accessed via `str(collection)`."""
        return ''.join(str(item) for item in self)

    def pretty(self):
        """
        Pretty-formatted SGF text representation. Separates game trees with a
        blank line.
        """
        return '\n\n'.join(item.pretty() for item in self) + '\n'

    def __repr__(self):
        """
        The canonical string representation of the `Collection`.
        """
        return '{}({}, ...)'.format(self.__class__.__name__, repr(self[0]))

    @classmethod
    def load(cls, path=None, data=None):
        """
        Return a `Collection` loaded from a filesystem `path` (`None` or "-"
        reads from <stdin>) or from `data` (`bytes` or `str`).
        """
        if data is None:
            if path == '-':
                path = None
            data = read_data(path)
        if isinstance(data, bytes):
            data = decode_data(data)
        return cls(Parser(data).parse(), path)

    def save(self, file_or_path=None, pretty=False):
        """
        Output as a bytestring to `file_or_path` (`None` or "-" writes to
        <stdout>), optionally `pretty`-formatted.
        """
        if pretty:
            output = bytes(self.pretty(), encoding=TEXT_ENCODING)
        else:
            output = bytes(self)
        if file_or_path == '-':
            file_or_path = None
        if hasattr(file_or_path, 'write'):
            file_or_path.write(output)
        elif file_or_path:
            with open(file_or_path, 'wb') as dest:
                dest.write(output)
        else:
            sys.stdout.buffer.write(output)

    def trunks(self):
        """Return a new `Collection` of the main line of each game."""
        return self.__class__(
            (gametree.trunk() for gametree in self), self.path)

    def normalize(self):
        return self.__class__(
            (gametree.normalize() for gametree in self), self.path)

    def anonymize(self, property_ids=PERSONAL_PROPERTY_IDS):
        """Return a new `Collection` with personal properties blanked."""
        return self.strip(*property_ids)

    def map_properties(self, function):
        return self.__class__(
            (gametree.map_properties(function) for gametree in self),
            self.path)


class Parser:

    """
    Parser for SGF text. Creates a tree structure based on
    the SGF standard itself. `Parser.parse()` will return a `Collection`
    object for the entire data.

    Grammar::

        Collection := GameTree+
        GameTree   := '(' Sequence GameTree* ')'
        Sequence   := Node+
        Node       := ';' Property*
        Property   := UcIdentifier PropValue+
        PropValue  := '[' any token but ']' ... ']'

    Whitespace is skipped between structural elements and kept inside
    property values.
    """

    def __init__(self, data='', tokens=None):
        """
        Scan `data` (a `str`), or use a list of `tokens` scanned earlier.

        Raise `ParseError` (caused by the `ScanError`) if `data` cannot be
        scanned.
        """
        if tokens is None:
            try:
                tokens = Scanner(data).scan()
            except ScanError as error:
                raise ParseError(error.message, error.position) from error
        self.tokens = list(tokens)
        """The complete token list."""

        self.index = 0
        """Current parsing position in `self.tokens`."""

    def peek(self, n=0):
        """
        Return the token `n` places past the current one, without consuming
        anything. Past the end of the tokens, return `EndOfInput`.
        """
        index = self.index + n
        if index < len(self.tokens):
            return self.tokens[index]
        return EndOfInput()

    def read(self):
        """Consume & return the current token (`EndOfInput` past the end)."""
        token = self.peek()
        if self.index < len(self.tokens):
            self.index += 1
        return token

    def error(self, message, error_class=ParseError):
        """
        Return an `error_class` exception positioned at the current token,
        or at the last token if all tokens have been consumed.
        """
        if not self.tokens:
            return error_class('empty file')
        token = self.tokens[min(self.index, len(self.tokens) - 1)]
        return error_class(message, token.position)

    def unexpected(self, message, error_class=TreeParseError):
        """Return an exception for an unexpected current token."""
        token = self.peek()
        if isinstance(token, EndOfInput):
            return self.error(
                f'unexpected end of data {message}', EndOfDataParseError)
        return self.error(f'unexpected {str(token)!r} {message}', error_class)

    def skip_whitespace(self):
        while isinstance(self.peek(), (Whitespace, Newline)):
            self.read()

    def parse(self):
        """
        Parse the tokens stored in `self.tokens`, and return a `Collection`.

        Any tokens before the first "(" are skipped, with a warning. Tokens
        after the last game tree are ignored.

        Raise `TreeParseError` if there is no game tree at all.
        """
        self.skip_whitespace()
        skipped = 0
        while not isinstance(self.peek(), (OpenParen, EndOfInput)):
            self.read()
            skipped += 1
        if skipped:
            warnings.warn(
                f'Skipped {skipped} token(s) of leading garbage before the '
                f'first game tree.')
        gametrees = []
        while isinstance(self.peek(), OpenParen):
            gametrees.append(self.parse_game_tree())
            self.skip_whitespace()
        if not gametrees:
            raise self.error('cannot have empty collection', TreeParseError)
        return Collection(gametrees)

    def parse_game_tree(self):
        """
        Parse and return one `GameTree`.

        Called when "(" encountered, ends when the matching ")" is consumed.

        Raise `TreeParseError` if a problem is encountered.

        Enclosing game trees wait on an explicit stack, so nesting depth is
        not bounded by the interpreter's recursion limit.
        """
        self.read()
        self.skip_whitespace()
        sequence = self.parse_sequence()
        self.skip_whitespace()
        branches = []
        enclosing = []
        while True:
            token = self.peek()
            if isinstance(token, OpenParen):
                enclosing.append((sequence, branches))
                self.read()
                self.skip_whitespace()
                sequence = self.parse_sequence()
                self.skip_whitespace()
                branches = []
            elif isinstance(token, CloseParen):
                self.read()
                gametree = GameTree(sequence, branches)
                if not enclosing:
                    return gametree
                sequence, branches = enclosing.pop()
                branches.append(gametree)
                self.skip_whitespace()
            elif isinstance(token, Semicolon):
                raise self.error(
                    'a node was encountered after a variation',
                    TreeParseError)
            else:
                raise self.unexpected('in game tree')

    def parse_sequence(self):
        """
        Parse and return a `Sequence` of one or more nodes.

        Raise `SequenceParseError` if no node starts here.
        """
        nodes = []
        while isinstance(self.peek(), Semicolon):
            nodes.append(self.parse_node())
            self.skip_whitespace()
        if not nodes:
            raise self.error('cannot have empty node list', SequenceParseError)
        return Sequence(nodes)

    def parse_node(self):
        """
        Parse and return one `Node`, which can be empty.

        Called when ";" encountered, ends at the first token that cannot
        start a property. Lowercase identifiers are handed to
        `parse_property()`, which rejects them.
        """
        self.read()
        self.skip_whitespace()
        properties = []
        while isinstance(self.peek(), (UcIdentifier, Identifier)):
            properties.append(self.parse_property())
            self.skip_whitespace()
        return Node(properties)

    def parse_property(self):
        """
        Parse and return one `Property` with one or more values.

        Raise `NodePropertyParseError` if the property has no values.
        """
        property_id = self.parse_property_id()
        self.skip_whitespace()
        values = []
        while isinstance(self.peek(), OpenBracket):
            values.append(self.parse_property_value())
            self.skip_whitespace()
        if not values:
            if isinstance(self.peek(), EndOfInput):
                error_class = EndOfDataParseError
            else:
                error_class = NodePropertyParseError
            raise self.error(
                f'cannot have empty property list for "{property_id}"',
                error_class)
        return Property(property_id, values)

    def parse_property_id(self):
        token = self.peek()
        if not isinstance(token, UcIdentifier):
            raise self.error(
                f'expected uppercase identifier, found {str(token)!r}',
                NodePropertyParseError)
        self.read()
        return token.text

    def parse_property_value(self):
        """
        Parse and return one property value, the text between "[" and "]".

        Every token inside the brackets contributes its text unchanged:
        escapes, whitespace, line breaks & non-ASCII characters included.

        Raise `EndOfDataParseError` if the data ends before the "]".
        """
        if not isinstance(self.peek(), OpenBracket):
            raise self.unexpected("(expected '[')", PropertyValueParseError)
        self.read()
        parts = []
        while True:
            token = self.peek()
            if isinstance(token, CloseBracket):
                self.read()
                return ''.join(parts)
            elif isinstance(token, EndOfInput):
                raise self.error(
                    "eof while waiting for ']'", EndOfDataParseError)
            parts.append(str(token))
            self.read()


def parse(text):
    """Parse SGF `text` (a `str`) and return a `Collection`."""
    return Parser(text).parse()


def read_data(path=None):
    """Return the bytes of file `path`, or of <stdin> if `path` is `None`."""
    if path:
        with open(path, 'rb') as src:
            return src.read()
    return sys.stdin.buffer.read()


def decode_data(data):
    """
    Decode SGF `data` (`bytes`) with `TEXT_ENCODING`. If that fails, warn,
    drop every byte above 0x7F, and decode the rest as ASCII.
    """
    try:
        return data.decode(TEXT_ENCODING)
    except UnicodeDecodeError as error:
        warnings.warn(
            f'SGF data is not valid {TEXT_ENCODING} ({error}); '
            f'non-ASCII bytes removed.')
        return bytes(byte for byte in data if byte < 0x80).decode('ascii')


class CLI:

    """
    Abstract base class that supports command-line interface tools.
    Subclasses must define:

    * An ``execute`` method as follows::

          def execute(self):
              # do everything here

    * `argument_specs`, the CLI arguments & options specifications, used as
      the arguments to `argparse.add_argument`::

          argument_specs = (
              (# Argument name or option flags (a tuple):
               ('name',),
               # Keyword arguments (a dictionary):
               {'default': None,
                'metavar': 'NAME',
                'help': ('Name that name.')}),
              # ...
              )

    * A class docstring that will be used as the description for the CLI
      --help.
    """

    argument_specs = ()

    def __init__(self, settings=None, argv=None):
        """Instantiate to process the command-line arguments."""
        if settings is None:
            settings = self.process_command_line(argv)
        self.settings = settings

    def execute(self):
        raise NotImplementedError

    def run(self):
        try:
            self.execute()
        except Exception:
            print(
                '\n{}'.format(
                    datetime.datetime.now().isoformat(
                        sep=' ', timespec='seconds')),
                file=sys.stderr)
            raise

    help_option_spec = (
        ('--help', '-h',),
        {'action': 'help', 'help': 'Show this help message.'})

    @classmethod
    def process_command_line(cls, argv=None):
        """
        Return `settings`, a namespace of options & arguments to their values.

        `argv` is a list of arguments; pass `None` (the default) to use the
        command-line arguments (``sys.argv[1:]``).
        """
        parser = argparse.ArgumentParser(
            description=textwrap.dedent(cls.__doc__),
            formatter_class=argparse.RawDescriptionHelpFormatter,
            # Help option added manually (below) for consistency:
            add_help=False,)
        for names, params in cls.argument_specs:
            parser.add_argument(*names, **params)
        names, params = cls.help_option_spec
        parser.add_argument(*names, **params)
        if argv is None:
            argv = sys.argv[1:]
        settings = parser.parse_args(argv)
        return settings


class NormalizerCLI(CLI):

    # Command-Line Interface implementation.

    """
    Normalize an SGF file (collection of game trees) into canonical SGF:

    * Remove all whitespace between structural elements (or pretty-format).

    * For any game tree with exactly one branch, combine the trunk of the
      branch with the trunk of the game tree itself.

    * Optionally strip out all variations (keep main game only).

    * Optionally blank out the values of given properties, e.g. player names.
    """

    def execute(self):
        if self.settings.tokens:
            self.dump_tokens()
            return
        collection = Collection.load(self.settings.source_file)
        if self.settings.main:
            collection = collection.trunks()
        collection = collection.normalize()
        property_ids = list(self.settings.strip or ())
        if self.settings.anonymize:
            property_ids.extend(PERSONAL_PROPERTY_IDS)
        if property_ids:
            collection = collection.strip(*property_ids)
        collection.save(self.settings.output, self.settings.pretty_format)

    def dump_tokens(self):
        """Print the scanner's tokens, one per line."""
        path = self.settings.source_file
        if path == '-':
            path = None
        text = decode_data(read_data(path))
        for token in Scanner(text).scan():
            print(f'{token.position}\t{token.__class__.__name__}\t'
                  f'{token.text!r}')

    argument_specs = (
        (('source_file',),
         {'type': str,
          'nargs': '?',
          'default': None,
          'help': ('Path to the SGF file to normalize. '
                   'Omit or use "-" to read from the standard input.')}),
        (('--output', '-o',),
         {'default': None,
          'help': ('Specify output SGF file path (default: "-", output to '
                   '<stdout>, standard output.')}),
        (('--main', '-m',),
         {'action': 'store_true',
          'default': False,
          'help': 'Output the main game only. Strip out all variations.'}),
        (('--strip', '-s',),
         {'action': 'append',
          'metavar': 'ID',
          'help': ('Blank out the values of the property with this ID '
                   '(e.g. "PB"). May be given multiple times.')}),
        (('--anonymize', '-a',),
         {'action': 'store_true',
          'default': False,
          'help': ('Blank out personal properties: '
                   + ', '.join(PERSONAL_PROPERTY_IDS) + '.')}),
        (('--pretty-format', '-p',),
         {'action': 'store_true',
          'default': False,
          'help': 'Pretty-format the output SGF.'}),
        (('--tokens', '-t',),
         {'action': 'store_true',
          'default': False,
          'help': ('Print the scanned tokens of the input instead of '
                   'SGF output.')}),
        )


def main(argv=None):
    NormalizerCLI(argv=argv).run()


if __name__ == '__main__':
    main()
