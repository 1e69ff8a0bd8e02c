"""GraphQL documents used by the command layer."""

from __future__ import annotations


VIEWER_QUERY = """
query Viewer {
  viewer {
    id
    name
    email
    organization { id name urlKey }
  }
}
"""

TEAMS_QUERY = """
query Teams($first: Int!, $after: String) {
  teams(first: $first, after: $after) {
    nodes { id key name description }
    pageInfo { hasNextPage endCursor }
  }
}
"""

WORKFLOW_STATES_QUERY = """
query WorkflowStates($teamId: ID!, $first: Int!, $after: String) {
  workflowStates(
    first: $first
    after: $after
    filter: { team: { id: { eq: $teamId } } }
  ) {
    nodes { id name type color position }
    pageInfo { hasNextPage endCursor }
  }
}
"""

ISSUES_QUERY = """
query Issues($filter: IssueFilter, $first: Int!, $after: String) {
  issues(filter: $filter, first: $first, after: $after) {
    nodes {
      id
      identifier
      title
      priority
      priorityLabel
      url
      createdAt
      updatedAt
      state { id name type }
      assignee { id name }
      team { id key name }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

ISSUE_QUERY = """
query Issue($id: String!) {
  issue(id: $id) {
    id
    identifier
    title
    description
    priority
    priorityLabel
    url
    createdAt
    updatedAt
    state { id name type }
    assignee { id name email }
    team { id key name }
    project { id name }
    parent { id identifier title }
    labels { nodes { id name color } }
  }
}
"""

RESOLVE_ISSUE_QUERY = """
query ResolveIssue($teamKey: String!, $number: Float!) {
  issues(
    first: 1
    filter: { team: { key: { eq: $teamKey } }, number: { eq: $number } }
  ) {
    nodes { id identifier }
  }
}
"""

CREATE_ISSUE_MUTATION = """
mutation CreateIssue($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    success
    issue { id identifier title url }
  }
}
"""

UPDATE_ISSUE_MUTATION = """
mutation UpdateIssue($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) {
    success
    issue { id identifier title url }
  }
}
"""

DELETE_ISSUE_MUTATION = """
mutation DeleteIssue($id: String!) {
  issueDelete(id: $id) {
    success
  }
}
"""


__all__ = [
    "CREATE_ISSUE_MUTATION",
    "DELETE_ISSUE_MUTATION",
    "ISSUES_QUERY",
    "ISSUE_QUERY",
    "RESOLVE_ISSUE_QUERY",
    "TEAMS_QUERY",
    "UPDATE_ISSUE_MUTATION",
    "VIEWER_QUERY",
    "WORKFLOW_STATES_QUERY",
]
